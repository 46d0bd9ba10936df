"""Scratchpad listing harvester.

Pages through the listing with a one-page lookahead, normalizes every item,
and appends the records to a resumable checkpoint store.
"""

from src.harvest.config import HarvestConfig, SortOrder, resolve_output_path
from src.harvest.engine import EngineResult, PageObserver, PaginationEngine
from src.harvest.errors import (
    ErrorRecord,
    HarvestError,
    HarvestErrorClass,
    ListingDecodeError,
)
from src.harvest.listing import ListingClient, ListingPage, ListingSource, decode_page
from src.harvest.metrics import HarvestMetrics
from src.harvest.normalizer import EXCLUDED_FIELDS, FieldResult, RecordNormalizer
from src.harvest.progress import ClickProgress
from src.harvest.shutdown import (
    DrainTimeoutError,
    ShutdownCoordinator,
    ShutdownPhase,
    ShutdownReport,
    ShutdownTransitionError,
)
from src.harvest.state import RunSnapshot, RunState, StopReason


__all__ = [
    "EXCLUDED_FIELDS",
    "ClickProgress",
    "DrainTimeoutError",
    "EngineResult",
    "ErrorRecord",
    "FieldResult",
    "HarvestConfig",
    "HarvestError",
    "HarvestErrorClass",
    "HarvestMetrics",
    "ListingClient",
    "ListingDecodeError",
    "ListingPage",
    "ListingSource",
    "PageObserver",
    "PaginationEngine",
    "RecordNormalizer",
    "RunSnapshot",
    "RunState",
    "ShutdownCoordinator",
    "ShutdownPhase",
    "ShutdownReport",
    "ShutdownTransitionError",
    "SortOrder",
    "StopReason",
    "decode_page",
    "resolve_output_path",
]
