"""Self-scheduling pagination engine with one-page lookahead."""

import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

import structlog

from src.features.store.errors import StorePersistenceError
from src.features.store.store import CheckpointStore
from src.harvest.errors import ErrorRecord, HarvestError, HarvestErrorClass
from src.harvest.listing import ListingPage, ListingSource
from src.harvest.metrics import HarvestMetrics
from src.harvest.normalizer import RecordNormalizer
from src.harvest.shutdown import ShutdownCoordinator
from src.harvest.state import RunSnapshot, RunState, StopReason


logger = structlog.get_logger()


class PageObserver(Protocol):
    """Receives progress after every persisted page."""

    def on_page(self, snapshot: RunSnapshot) -> None:
        """Handle a persisted page."""
        ...


@dataclass(frozen=True)
class EngineResult:
    """Outcome of PaginationEngine.run()."""

    reason: StopReason
    exhausted: bool
    fetches_issued: int
    last_error: ErrorRecord | None = None


@dataclass(frozen=True)
class _FetchOutcome:
    result: "ListingPage | HarvestError"
    # Whether the run was already stopping when the fetch returned
    after_stop: bool


@dataclass
class _PendingFetch:
    cursor: str | None
    future: "Future[_FetchOutcome]"
    prefetched: bool


class PaginationEngine:
    """Drives the fetch, normalize, persist cycle.

    When page n arrives, the fetch of page n+1 is issued before page n is
    normalized and persisted, so the two overlap. Only one fetch is ever
    outstanding, which keeps records in request order without buffering.
    Stop requests are observed between cycles: a page whose fetch returned
    before the stop is still persisted, a page that returned after it is
    discarded, and nothing new is scheduled.
    """

    def __init__(  # noqa: PLR0913
        self,
        listing: ListingSource,
        normalizer: RecordNormalizer,
        store: CheckpointStore,
        state: RunState,
        coordinator: ShutdownCoordinator,
        run_id: str,
        max_consecutive_failures: int = 3,
        observer: PageObserver | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            listing: Source of listing pages.
            normalizer: Record normalizer.
            store: Store the engine owns until it returns.
            state: Run state (the engine is its only writer).
            coordinator: Shutdown coordinator to signal and observe.
            run_id: Run identifier for logging.
            max_consecutive_failures: Failed cycles in a row before halting.
            observer: Optional progress observer.
        """
        self._listing = listing
        self._normalizer = normalizer
        self._store = store
        self._state = state
        self._coordinator = coordinator
        self._max_consecutive_failures = max(1, max_consecutive_failures)
        self._observer = observer
        self._fetches_issued = 0
        self._metrics = HarvestMetrics.get_instance()
        self._log = logger.bind(component="engine", run_id=run_id)

    def run(self) -> EngineResult:
        """Harvest until the budget, the end of the listing, a halt, or a stop.

        Returns with no fetch in flight; the coordinator is then told the
        store may be finalized.

        Returns:
            EngineResult describing why the run stopped.
        """
        self._log.info(
            "engine_started",
            start_cursor=self._state.next_cursor,
            page_size=self._state.page_size,
            budget=self._state.budget,
        )
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="listing-fetch")
        pending: deque[_PendingFetch] = deque()
        try:
            result = self._loop(executor, pending)
        finally:
            self._drain(executor, pending)
            self._coordinator.mark_drained()

        self._log.info(
            "engine_stopped",
            reason=result.reason.value,
            exhausted=result.exhausted,
            fetches_issued=result.fetches_issued,
            produced=self._state.produced,
        )
        return result

    def _loop(
        self,
        executor: ThreadPoolExecutor,
        pending: deque[_PendingFetch],
    ) -> EngineResult:
        consecutive_failures = 0
        last_error: ErrorRecord | None = None
        exhausted = False

        if not self._coordinator.stop_requested:
            pending.append(self._schedule(executor, self._state.next_cursor))

        while pending:
            fetch = pending.popleft()
            outcome = self._await(fetch)

            if outcome.after_stop:
                if isinstance(outcome.result, ListingPage):
                    self._metrics.record_page_discarded()
                    self._log.info(
                        "page_discarded",
                        cursor=fetch.cursor,
                        items=len(outcome.result.items),
                    )
                break

            if isinstance(outcome.result, HarvestError):
                error = outcome.result
                consecutive_failures += 1
                last_error = ErrorRecord.from_exception(error)
                self._metrics.record_failed_cycle(error.error_class)
                self._log.warning(
                    "page_failed",
                    consecutive_failures=consecutive_failures,
                    max_consecutive_failures=self._max_consecutive_failures,
                    **error.to_dict(),
                )
                if self._coordinator.stop_requested:
                    break
                if consecutive_failures >= self._max_consecutive_failures:
                    self._log.error(
                        "fetch_failures_exceeded",
                        consecutive_failures=consecutive_failures,
                        cursor=fetch.cursor,
                    )
                    self._coordinator.request_stop(StopReason.FETCH_FAILED)
                    break
                pending.append(self._schedule(executor, fetch.cursor))
                continue

            page = outcome.result
            consecutive_failures = 0
            self._metrics.record_page_fetched()

            if not page.is_last and self._state.prefetch_allowed():
                pending.append(self._schedule(executor, page.cursor, prefetched=True))
                self._metrics.record_prefetch()

            try:
                self._persist(page)
            except StorePersistenceError as e:
                last_error = ErrorRecord(
                    error_class=HarvestErrorClass.PERSISTENCE,
                    message=e.message,
                    cursor=fetch.cursor,
                )
                self._log.error("page_persist_failed", cursor=fetch.cursor, **e.to_dict())
                self._coordinator.request_stop(StopReason.PERSIST_FAILED)
                break

            if page.is_last:
                exhausted = True
                self._coordinator.request_stop(StopReason.EXHAUSTED)
                break

            if self._state.budget_reached():
                self._coordinator.request_stop(StopReason.BUDGET_REACHED)
                break

            # A pending prefetch is taken by the next cycle
            if not pending and not self._coordinator.stop_requested:
                pending.append(self._schedule(executor, page.cursor))

        reason = self._coordinator.reason
        if reason is None:
            msg = "Engine stopped without a stop request"
            raise RuntimeError(msg)

        return EngineResult(
            reason=reason,
            exhausted=exhausted,
            fetches_issued=self._fetches_issued,
            last_error=last_error,
        )

    def _schedule(
        self,
        executor: ThreadPoolExecutor,
        cursor: str | None,
        prefetched: bool = False,
    ) -> _PendingFetch:
        self._fetches_issued += 1
        self._log.debug(
            "fetch_scheduled",
            cursor=cursor,
            prefetched=prefetched,
            fetch_number=self._fetches_issued,
        )
        return _PendingFetch(
            cursor=cursor,
            future=executor.submit(self._fetch, cursor),
            prefetched=prefetched,
        )

    def _fetch(self, cursor: str | None) -> _FetchOutcome:
        """Run on the worker thread; every failure becomes a HarvestError."""
        result: ListingPage | HarvestError
        try:
            result = self._fetch_page(cursor)
        except HarvestError as e:
            result = e
        return _FetchOutcome(result=result, after_stop=self._state.stopping.is_set())

    def _fetch_page(self, cursor: str | None) -> ListingPage:
        try:
            return self._listing.fetch_page(cursor)
        except HarvestError:
            raise
        except Exception as e:  # noqa: BLE001
            raise HarvestError(
                error_class=HarvestErrorClass.TRANSPORT,
                message=f"Unexpected fetch error: {e}",
                cursor=cursor,
            ) from e

    @staticmethod
    def _await(fetch: _PendingFetch) -> _FetchOutcome:
        return fetch.future.result()

    def _persist(self, page: ListingPage) -> None:
        """Normalize and append one page, then advance the run state."""
        if not page.items:
            return

        start_time_ns = time.perf_counter_ns()
        records = self._normalizer.normalize_page(page.items)
        self._store.append(records, page.cursor)
        self._state.record_page(len(records), page.cursor)
        self._metrics.record_page_persisted(len(records))

        snapshot = self._state.snapshot()
        self._log.info(
            "page_persisted",
            request_cursor=page.request_cursor,
            next_cursor=page.cursor,
            records=len(records),
            produced=snapshot.produced,
            duration_ms=round((time.perf_counter_ns() - start_time_ns) / 1_000_000, 2),
        )
        if self._observer is not None:
            self._observer.on_page(snapshot)

    def _drain(
        self,
        executor: ThreadPoolExecutor,
        pending: deque[_PendingFetch],
    ) -> None:
        """Cancel or await every outstanding fetch and drop its result."""
        while pending:
            fetch = pending.popleft()
            cancelled = fetch.future.cancel()
            self._metrics.record_page_discarded()
            self._log.info(
                "fetch_discarded",
                cursor=fetch.cursor,
                prefetched=fetch.prefetched,
                cancelled=cancelled,
            )
        executor.shutdown(wait=True, cancel_futures=True)
