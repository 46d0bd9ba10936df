"""HTTP fetch layer for the listing endpoint.

Requests never raise: every outcome is a FetchResult. Transient failures are
retried with backoff, and a retry sleep returns early once the run is stopping.
"""

from src.features.fetch.client import HttpFetcher
from src.features.fetch.config import FetchConfig
from src.features.fetch.metrics import FetchMetrics
from src.features.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
    RetryPolicy,
)


__all__ = [
    "FetchConfig",
    "FetchError",
    "FetchErrorClass",
    "FetchMetrics",
    "FetchResult",
    "HttpFetcher",
    "ResponseSizeExceededError",
    "RetryPolicy",
]
