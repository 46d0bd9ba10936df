"""Graceful shutdown: stop scheduling, drain, finalize the store."""

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, auto
from types import FrameType
from typing import Any, ClassVar

import structlog

from src.features.store.errors import StorePersistenceError
from src.features.store.store import CheckpointStore
from src.harvest.state import RunState, StopReason


logger = structlog.get_logger()

# Upper bound on waiting for the engine to release the store
DEFAULT_DRAIN_TIMEOUT_SECONDS = 300.0


class ShutdownPhase(Enum):
    """Shutdown lifecycle phases.

    State transitions:
        RUNNING -> STOPPING: Stop requested (budget, end of listing, signal, fault)
        STOPPING -> FINALIZING: Engine drained, store handed over
        FINALIZING -> TERMINATED: Checkpoint written (or write gave up)
    """

    RUNNING = auto()
    STOPPING = auto()
    FINALIZING = auto()
    TERMINATED = auto()


class ShutdownTransitionError(Exception):
    """Raised when an invalid shutdown phase transition is attempted."""

    def __init__(self, from_phase: ShutdownPhase, to_phase: ShutdownPhase) -> None:
        """Initialize the error.

        Args:
            from_phase: The current phase.
            to_phase: The attempted target phase.
        """
        self.from_phase = from_phase
        self.to_phase = to_phase
        super().__init__(
            f"Invalid shutdown transition: {from_phase.name} -> {to_phase.name}"
        )


class DrainTimeoutError(Exception):
    """Raised when the engine does not release the store in time."""


@dataclass(frozen=True)
class ShutdownReport:
    """Final counters of a run."""

    reason: StopReason
    records_produced: int
    records_total: int
    pages_persisted: int
    elapsed_ms: float
    last_cursor: str | None
    exhausted: bool
    finalized: bool
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if the run ended on a normal termination path."""
        return self.finalized and not self.reason.is_failure

    @property
    def exit_code(self) -> int:
        """Get the process exit status for this report."""
        return 0 if self.success else 1

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary for logging."""
        return {
            "reason": self.reason.value,
            "records_produced": self.records_produced,
            "records_total": self.records_total,
            "pages_persisted": self.pages_persisted,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "last_cursor": self.last_cursor,
            "exhausted": self.exhausted,
            "finalized": self.finalized,
            "error": self.error,
        }


class ShutdownCoordinator:
    """Owns the stop flag and the single finalize of the store.

    ``request_stop`` is idempotent and safe to call from a signal handler:
    only the first call changes anything.
    """

    VALID_TRANSITIONS: ClassVar[dict[ShutdownPhase, set[ShutdownPhase]]] = {
        ShutdownPhase.RUNNING: {ShutdownPhase.STOPPING},
        ShutdownPhase.STOPPING: {ShutdownPhase.FINALIZING},
        ShutdownPhase.FINALIZING: {ShutdownPhase.TERMINATED},
        ShutdownPhase.TERMINATED: set(),  # Terminal state
    }

    HANDLED_SIGNALS: ClassVar[tuple[signal.Signals, ...]] = (
        signal.SIGINT,
        signal.SIGTERM,
    )

    def __init__(self, state: RunState, run_id: str) -> None:
        """Initialize the coordinator in RUNNING phase.

        Args:
            state: Run state whose ``stopping`` flag this coordinator sets.
            run_id: Run identifier for logging.
        """
        self._state = state
        self._run_id = run_id
        self._phase = ShutdownPhase.RUNNING
        self._reason: StopReason | None = None
        # Re-entrant: a signal handler runs on the main thread, possibly
        # while the main thread already holds the lock.
        self._lock = threading.RLock()
        self._drained = threading.Event()
        self._log = logger.bind(component="shutdown", run_id=run_id)

    @property
    def phase(self) -> ShutdownPhase:
        """Get the current phase."""
        return self._phase

    @property
    def reason(self) -> StopReason | None:
        """Get the reason of the first stop request."""
        return self._reason

    @property
    def stop_requested(self) -> bool:
        """Check if stopping has begun."""
        return self._state.stopping.is_set()

    def _transition(self, to_phase: ShutdownPhase) -> None:
        if to_phase not in self.VALID_TRANSITIONS[self._phase]:
            self._log.error(
                "invariant_violation",
                error_type="illegal_shutdown_transition",
                from_phase=self._phase.name,
                to_phase=to_phase.name,
            )
            raise ShutdownTransitionError(self._phase, to_phase)

        old_phase = self._phase
        self._phase = to_phase
        self._log.info(
            "shutdown_transition",
            from_phase=old_phase.name,
            to_phase=to_phase.name,
        )

    def request_stop(self, reason: StopReason) -> bool:
        """Ask the engine to stop scheduling new fetches.

        Args:
            reason: Why the run is stopping.

        Returns:
            True if this call started the shutdown, False if it was a no-op.
        """
        with self._lock:
            if self._phase is not ShutdownPhase.RUNNING:
                self._log.info(
                    "stop_already_requested",
                    reason=reason.value,
                    first_reason=self._reason.value if self._reason else None,
                    phase=self._phase.name,
                )
                return False

            self._reason = reason
            self._state.stopping.set()
            self._transition(ShutdownPhase.STOPPING)
            self._log.info("stop_requested", reason=reason.value)
            return True

    def mark_drained(self) -> None:
        """Signal that the engine has no fetch in flight and released the store."""
        self._drained.set()

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:  # noqa: ARG002
        self._log.info("signal_received", signal=signal.Signals(signum).name)
        self.request_stop(StopReason.CANCELLED)

    @contextmanager
    def signal_handlers(self) -> Iterator[None]:
        """Route SIGINT/SIGTERM to ``request_stop`` for the duration of the block.

        Previous handlers are restored on exit.
        """
        previous: dict[signal.Signals, Any] = {}
        for signum in self.HANDLED_SIGNALS:
            previous[signum] = signal.signal(signum, self._handle_signal)
        try:
            yield
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

    def finalize(
        self,
        store: CheckpointStore,
        exhausted: bool = False,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT_SECONDS,
    ) -> ShutdownReport:
        """Write the final checkpoint once the engine has drained.

        Args:
            store: Store handed over by the engine.
            exhausted: Whether the listing was harvested to its end.
            drain_timeout: Seconds to wait for the engine to drain.

        Returns:
            ShutdownReport with the final counters.

        Raises:
            ShutdownTransitionError: If no stop was requested, or if called twice.
            DrainTimeoutError: If the engine did not drain in time.
        """
        with self._lock:
            if self._phase is not ShutdownPhase.STOPPING or self._reason is None:
                raise ShutdownTransitionError(self._phase, ShutdownPhase.FINALIZING)
            reason = self._reason

        if not self._drained.wait(drain_timeout):
            msg = f"Engine did not drain within {drain_timeout} seconds"
            raise DrainTimeoutError(msg)

        with self._lock:
            self._transition(ShutdownPhase.FINALIZING)

        snapshot = self._state.snapshot()
        error: str | None = None
        finalized = True
        try:
            store.finalize(snapshot.next_cursor, exhausted=exhausted)
        except StorePersistenceError as e:
            finalized = False
            error = e.message
            self._log.error("finalize_failed", **e.to_dict())

        with self._lock:
            self._transition(ShutdownPhase.TERMINATED)

        report = ShutdownReport(
            reason=reason,
            records_produced=snapshot.produced,
            records_total=store.record_count,
            pages_persisted=snapshot.pages_persisted,
            elapsed_ms=snapshot.elapsed_ms,
            last_cursor=store.checkpoint.cursor if store.checkpoint else None,
            exhausted=exhausted,
            finalized=finalized,
            error=error,
        )
        self._log.info("shutdown_complete", **report.to_dict())
        return report
