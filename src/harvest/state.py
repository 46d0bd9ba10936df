"""Process-local run state shared by the engine and the shutdown coordinator."""

import threading
import time
from dataclasses import dataclass
from enum import Enum


class StopReason(str, Enum):
    """Why a run stopped scheduling new fetches.

    - BUDGET_REACHED: Records produced reached the configured budget
    - EXHAUSTED: The listing returned its last page
    - CANCELLED: The operator interrupted the run
    - FETCH_FAILED: Too many consecutive page failures
    - PERSIST_FAILED: The store could not be written
    """

    BUDGET_REACHED = "BUDGET_REACHED"
    EXHAUSTED = "EXHAUSTED"
    CANCELLED = "CANCELLED"
    FETCH_FAILED = "FETCH_FAILED"
    PERSIST_FAILED = "PERSIST_FAILED"

    @property
    def is_failure(self) -> bool:
        """Check if the run stopped because of an unrecoverable fault."""
        return self in (StopReason.FETCH_FAILED, StopReason.PERSIST_FAILED)


@dataclass(frozen=True)
class RunSnapshot:
    """Consistent copy of the counters at one instant."""

    produced: int
    pages_persisted: int
    next_cursor: str | None
    elapsed_ms: float


class RunState:
    """Counters and position of the current run.

    The engine is the only writer. ``next_cursor`` and ``produced`` are
    guarded by a lock; ``stopping`` is an event so that it can be set from a
    signal handler and waited on by the fetch worker.
    """

    def __init__(
        self,
        page_size: int,
        budget: int | None = None,
        start_cursor: str | None = None,
    ) -> None:
        """Initialize the run state.

        Args:
            page_size: Items requested per page.
            budget: Maximum records for this run (None = unbounded).
            start_cursor: Cursor the first fetch uses (None = first page).
        """
        self._page_size = page_size
        self._budget = budget
        self._lock = threading.Lock()
        self._produced = 0
        self._pages_persisted = 0
        self._next_cursor = start_cursor
        self._started_ns = time.perf_counter_ns()
        self.stopping = threading.Event()

    @property
    def page_size(self) -> int:
        """Get the page size."""
        return self._page_size

    @property
    def budget(self) -> int | None:
        """Get the record budget (None = unbounded)."""
        return self._budget

    @property
    def produced(self) -> int:
        """Get the number of records produced this run."""
        with self._lock:
            return self._produced

    @property
    def next_cursor(self) -> str | None:
        """Get the cursor following the last persisted page."""
        with self._lock:
            return self._next_cursor

    @property
    def elapsed_ms(self) -> float:
        """Get milliseconds since the run state was created."""
        return (time.perf_counter_ns() - self._started_ns) / 1_000_000

    def record_page(self, records: int, cursor: str | None) -> None:
        """Account for a persisted page.

        Args:
            records: Records in the page.
            cursor: Cursor returned with the page.
        """
        with self._lock:
            self._produced += records
            self._pages_persisted += 1
            self._next_cursor = cursor

    def prefetch_allowed(self) -> bool:
        """Check if the page after the one in hand may be fetched early.

        The lookahead page must fit entirely within the budget on top of the
        page currently being processed.
        """
        if self.stopping.is_set():
            return False
        if self._budget is None:
            return True
        with self._lock:
            return self._produced + 2 * self._page_size <= self._budget

    def budget_reached(self) -> bool:
        """Check if this run has produced its budget of records."""
        if self._budget is None:
            return False
        with self._lock:
            return self._produced >= self._budget

    def snapshot(self) -> RunSnapshot:
        """Take a consistent copy of the counters."""
        with self._lock:
            return RunSnapshot(
                produced=self._produced,
                pages_persisted=self._pages_persisted,
                next_cursor=self._next_cursor,
                elapsed_ms=self.elapsed_ms,
            )
