"""Data models for the HTTP fetch layer."""

import random
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from src.features.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)


class FetchErrorClass(str, Enum):
    """Why a listing request failed.

    Only transient classes (timeouts, dropped connections, 5xx, 429) are
    retried. A 4xx, an oversized page or a stopping run ends the request.
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @property
    def transient(self) -> bool:
        """Whether a later attempt may succeed."""
        return self in _TRANSIENT_CLASSES


_TRANSIENT_CLASSES = frozenset(
    {
        FetchErrorClass.NETWORK_TIMEOUT,
        FetchErrorClass.CONNECTION_ERROR,
        FetchErrorClass.HTTP_5XX,
        FetchErrorClass.RATE_LIMITED,
    }
)


class FetchError(BaseModel):
    """Typed error from a listing request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass = Field(description="Classification of the error")
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]
    status_code: int | None = Field(
        default=None, description="HTTP status code if available"
    )
    retry_after: int | None = Field(
        default=None, description="Seconds the server asked us to wait (429)"
    )

    @classmethod
    def from_status(
        cls, status_code: int, retry_after: int | None = None
    ) -> "FetchError | None":
        """Classify a response status.

        Args:
            status_code: HTTP status code of the response.
            retry_after: Parsed Retry-After header, if any.

        Returns:
            FetchError for a non-2xx status, None for success.
        """
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None
        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return cls(
                error_class=FetchErrorClass.RATE_LIMITED,
                message="Rate limited (429 Too Many Requests)",
                status_code=status_code,
                retry_after=retry_after,
            )
        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            error_class = FetchErrorClass.HTTP_4XX
            message = f"Client error ({status_code})"
        elif HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            error_class = FetchErrorClass.HTTP_5XX
            message = f"Server error ({status_code})"
        else:
            error_class = FetchErrorClass.UNKNOWN
            message = f"Unexpected status ({status_code})"
        return cls(error_class=error_class, message=message, status_code=status_code)


class FetchResult(BaseModel):
    """Result of a single listing request, after retries."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int = Field(ge=0, le=599, description="HTTP status code (0 if none)")
    final_url: Annotated[
        str, Field(min_length=1, description="Final URL after redirects")
    ]
    body_bytes: bytes = Field(default=b"", description="Response body")
    attempts: int = Field(default=1, ge=1, description="Requests made, retries included")
    error: FetchError | None = Field(
        default=None, description="Error details if fetch failed"
    )

    @property
    def is_success(self) -> bool:
        """Check if the fetch was successful (2xx status, no error)."""
        return (
            self.error is None
            and HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX
        )

    @property
    def body_size(self) -> int:
        """Get the size of the response body in bytes."""
        return len(self.body_bytes)


class RetryPolicy(BaseModel):
    """Bounded exponential backoff for transient request failures.

    delay = min(base_delay_ms * exponential_base ** attempt, max_delay_ms),
    plus up to ``jitter_factor`` of that delay at random.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 30000
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the error is transient and retries remain.
        """
        return attempt < self.max_retries and error.error_class.transient

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate the backoff delay before the next attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay_ms)
        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)

    def delay_for(self, error: FetchError, attempt: int) -> int:
        """Backoff delay, stretched to honor a Retry-After of at most a minute."""
        delay_ms = self.get_delay_ms(attempt)
        if error.retry_after and error.retry_after > 0:
            retry_after_ms = min(error.retry_after, MAX_RETRY_AFTER_SECONDS) * 1000
            delay_ms = max(delay_ms, retry_after_ms)
        return delay_ms


class ResponseSizeExceededError(Exception):
    """Raised while streaming a body that outgrows the size limit."""

    def __init__(self, limit: int, read: int) -> None:
        """Initialize the error.

        Args:
            limit: Configured maximum body size in bytes.
            read: Bytes read when the limit was crossed.
        """
        super().__init__(
            f"Response size exceeded limit of {limit} bytes (read {read} bytes)"
        )
        self.limit = limit
        self.read = read
