"""Atomic file writing for the checkpoint store."""

import hashlib
import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from src.features.store.models import WriteResult


logger = structlog.get_logger()


def json_default(value: Any) -> Any:
    """Serialize values the json module does not handle natively.

    Aware datetimes are written in UTC with a ``Z`` suffix and millisecond
    precision; naive datetimes are written as-is.

    Raises:
        TypeError: For any other unsupported type.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.isoformat()
        utc_value = value.astimezone(UTC)
        return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


class AtomicWriter:
    """Provides atomic file writing operations.

    Writes content to a temporary file in the same directory, fsyncs it, then
    replaces the final path. Readers see either the complete old file or the
    complete new file, never a partial write.
    """

    def __init__(self, run_id: str | None = None) -> None:
        """Initialize the atomic writer.

        Args:
            run_id: Optional run ID for logging context.
        """
        self._log = logger.bind(component="atomic_writer")
        if run_id:
            self._log = self._log.bind(run_id=run_id)

    def write_json(self, path: Path, elements: list[Any]) -> WriteResult:
        """Serialize a JSON array and write it atomically.

        Args:
            path: Target file path.
            elements: Array elements to serialize.

        Returns:
            WriteResult with size and checksum information.

        Raises:
            OSError: If the temporary file cannot be written or renamed.
        """
        content = json.dumps(
            elements, default=json_default, ensure_ascii=False, separators=(",", ":")
        )
        content_bytes = content.encode("utf-8")
        sha256 = hashlib.sha256(content_bytes).hexdigest()

        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("wb") as handle:
                handle.write(content_bytes)
                handle.flush()
                os.fsync(handle.fileno())
            temp_path.replace(path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

        self._log.debug(
            "file_written",
            path=str(path),
            bytes=len(content_bytes),
            elements=len(elements),
            sha256=sha256[:12],
        )

        return WriteResult(
            path=str(path),
            bytes_written=len(content_bytes),
            sha256=sha256,
            elements=len(elements),
        )
