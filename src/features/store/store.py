"""JSON checkpoint store for harvested records."""

import json
import time
import uuid
from pathlib import Path

import structlog

from src.features.store.errors import (
    CorruptStoreError,
    ResumeIntegrityError,
    StoreClosedError,
    StoreNotFoundError,
    StorePersistenceError,
)
from src.features.store.io import AtomicWriter
from src.features.store.metrics import StoreMetrics
from src.features.store.models import Checkpoint, Record, ResumePoint, WriteResult


logger = structlog.get_logger()

DEFAULT_MAX_WRITE_ATTEMPTS = 3
DEFAULT_WRITE_RETRY_DELAY_SECONDS = 0.5


def read_store(path: Path, resume: bool = True) -> ResumePoint:
    """Read a store file for resuming.

    An empty file or an empty array counts as no prior run.

    Args:
        path: Store file path.
        resume: Whether the caller intends to resume from the stored
            checkpoint. When False (an explicit starting cursor was given),
            a missing or malformed checkpoint is tolerated and a trailing
            checkpoint, if any, is dropped.

    Returns:
        ResumePoint with the persisted records and checkpoint.

    Raises:
        StoreNotFoundError: If the file does not exist.
        CorruptStoreError: If the file is not a JSON array of objects.
        ResumeIntegrityError: If resuming and the last element is not a
            well-formed checkpoint.
    """
    if not path.exists():
        raise StoreNotFoundError(path)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read store {path}: {e}"
        raise CorruptStoreError(msg, path) from e

    if not text.strip():
        return ResumePoint()

    try:
        elements = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Store {path} is not valid JSON (line {e.lineno}, column {e.colno})"
        raise CorruptStoreError(msg, path) from e

    if not isinstance(elements, list):
        msg = f"Store {path} must hold a JSON array, found {type(elements).__name__}"
        raise CorruptStoreError(msg, path)

    if not elements:
        return ResumePoint()

    checkpoint = Checkpoint.from_element(elements[-1])
    if checkpoint is not None:
        elements = elements[:-1]
    elif resume:
        msg = (
            f"Store {path} has no trailing checkpoint to resume from; "
            "the previous run may have been interrupted. Pass an explicit "
            "cursor or overwrite the store."
        )
        raise ResumeIntegrityError(msg, path)

    for index, element in enumerate(elements):
        if not isinstance(element, dict):
            msg = f"Store {path} element {index} is not an object"
            raise CorruptStoreError(msg, path)

    return ResumePoint(records=elements, checkpoint=checkpoint if resume else None)


class CheckpointStore:
    """Ordered record sequence plus a single trailing checkpoint.

    Every write rewrites the whole file atomically, so the file on disk is
    always a complete JSON array. After the first page is appended the file
    always ends with exactly one checkpoint carrying the cursor that follows
    the last persisted record.
    """

    def __init__(  # noqa: PLR0913
        self,
        path: Path,
        records: list[Record] | None = None,
        checkpoint: Checkpoint | None = None,
        run_id: str | None = None,
        max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
        write_retry_delay_seconds: float = DEFAULT_WRITE_RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize the store.

        Args:
            path: Store file path.
            records: Records already persisted (from a resumed run).
            checkpoint: Checkpoint already persisted (from a resumed run).
            run_id: Optional run ID for logging context.
            max_write_attempts: Attempts per write before giving up.
            write_retry_delay_seconds: Delay between write attempts.
        """
        self._path = path
        self._records: list[Record] = list(records or [])
        self._checkpoint = checkpoint
        self._run_id = run_id or str(uuid.uuid4())
        self._max_write_attempts = max(1, max_write_attempts)
        self._write_retry_delay_seconds = write_retry_delay_seconds
        self._finalized = False
        self._writer = AtomicWriter(self._run_id)
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            run_id=self._run_id,
            path=str(self._path),
        )

    @classmethod
    def open(
        cls,
        path: Path,
        resume: bool = True,
        run_id: str | None = None,
    ) -> tuple["CheckpointStore", ResumePoint]:
        """Open an existing store.

        Args:
            path: Store file path.
            resume: Whether the stored checkpoint must be usable.
            run_id: Optional run ID for logging context.

        Returns:
            Tuple of the open store and what it holds.

        Raises:
            StoreNotFoundError: If the file does not exist.
            CorruptStoreError: If the file cannot be parsed.
            ResumeIntegrityError: If resuming without a valid checkpoint.
        """
        resume_point = read_store(path, resume=resume)
        store = cls(
            path,
            records=resume_point.records,
            checkpoint=resume_point.checkpoint,
            run_id=run_id,
        )
        store._log.info(
            "store_opened",
            records=len(resume_point.records),
            cursor=resume_point.cursor,
            exhausted=resume_point.exhausted,
            resume=resume,
        )
        return store, resume_point

    @classmethod
    def open_or_reset(
        cls,
        path: Path,
        overwrite: bool = False,
        resume: bool = True,
        run_id: str | None = None,
    ) -> tuple["CheckpointStore", ResumePoint]:
        """Open a store, creating it empty if absent or if overwrite is set.

        Args:
            path: Store file path.
            overwrite: Discard any prior store contents.
            resume: Whether the stored checkpoint must be usable.
            run_id: Optional run ID for logging context.

        Returns:
            Tuple of the open store and what it holds.

        Raises:
            CorruptStoreError: If a prior store cannot be parsed.
            ResumeIntegrityError: If resuming without a valid checkpoint.
        """
        if not overwrite:
            try:
                return cls.open(path, resume=resume, run_id=run_id)
            except StoreNotFoundError:
                pass

        path.parent.mkdir(parents=True, exist_ok=True)
        store = cls(path, run_id=run_id)
        store._write()
        store._log.info("store_created", overwrite=overwrite)
        return store, ResumePoint()

    @property
    def path(self) -> Path:
        """Get the store file path."""
        return self._path

    @property
    def records(self) -> list[Record]:
        """Get a copy of the persisted records."""
        return list(self._records)

    @property
    def record_count(self) -> int:
        """Get the number of persisted records."""
        return len(self._records)

    @property
    def checkpoint(self) -> Checkpoint | None:
        """Get the current trailing checkpoint."""
        return self._checkpoint

    @property
    def is_finalized(self) -> bool:
        """Check if the store has been finalized."""
        return self._finalized

    def append(self, records: list[Record], cursor: str | None) -> WriteResult:
        """Durably add one page of records.

        Args:
            records: Normalized records, in page order.
            cursor: Cursor returned with this page (None when the listing
                has no further pages).

        Returns:
            WriteResult of the rewrite.

        Raises:
            StoreClosedError: If the store was already finalized.
            StorePersistenceError: If every write attempt failed. The store
                is left unchanged in memory and on disk.
        """
        if self._finalized:
            msg = "Cannot append to a finalized store"
            raise StoreClosedError(msg, self._path)

        previous_records = self._records
        previous_checkpoint = self._checkpoint
        self._records = previous_records + list(records)
        self._checkpoint = Checkpoint(cursor=cursor or None)

        try:
            result = self._write()
        except StorePersistenceError:
            self._records = previous_records
            self._checkpoint = previous_checkpoint
            raise

        self._metrics.record_append(len(records))
        self._log.debug(
            "store_appended",
            appended=len(records),
            total=len(self._records),
            cursor=self._checkpoint.cursor,
        )
        return result

    def finalize(self, cursor: str | None, exhausted: bool = False) -> WriteResult:
        """Write the final trailing checkpoint and close the store.

        Safe to call more than once; each call rewrites the single trailing
        checkpoint.

        Args:
            cursor: Cursor following the last persisted record.
            exhausted: Whether the listing was harvested to its end.

        Returns:
            WriteResult of the rewrite.

        Raises:
            StorePersistenceError: If every write attempt failed.
        """
        if exhausted:
            self._checkpoint = Checkpoint(cursor=None)
        elif cursor:
            self._checkpoint = Checkpoint(cursor=cursor)
        elif self._checkpoint is not None and not self._checkpoint.exhausted:
            # No position known this run; keep the one already on disk.
            pass
        else:
            self._checkpoint = None

        result = self._write()
        self._finalized = True
        self._metrics.record_finalize()
        self._log.info(
            "store_finalized",
            records=len(self._records),
            cursor=self._checkpoint.cursor if self._checkpoint else None,
            exhausted=bool(self._checkpoint and self._checkpoint.exhausted),
            sha256=result.sha256[:12],
        )
        return result

    def _elements(self) -> list[object]:
        """Build the persisted array."""
        elements: list[object] = list(self._records)
        if self._checkpoint is not None:
            elements.append(self._checkpoint.to_element())
        return elements

    def _write(self) -> WriteResult:
        """Rewrite the store file with bounded retries.

        Raises:
            StorePersistenceError: If every attempt failed.
        """
        elements = self._elements()
        last_error = OSError("store write not attempted")

        for attempt in range(1, self._max_write_attempts + 1):
            start_time_ns = time.perf_counter_ns()
            try:
                result = self._writer.write_json(self._path, elements)
            except OSError as e:
                last_error = e
                self._metrics.record_write_failure()
                self._log.warning(
                    "store_write_failed",
                    attempt=attempt,
                    max_attempts=self._max_write_attempts,
                    error=str(e),
                )
                if attempt < self._max_write_attempts:
                    time.sleep(self._write_retry_delay_seconds)
                continue

            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_write(result.bytes_written, duration_ms)
            return result

        raise StorePersistenceError(self._path, self._max_write_attempts, last_error)
