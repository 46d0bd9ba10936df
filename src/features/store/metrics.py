"""Metrics collection for the checkpoint store."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for checkpoint store operations.

    Attributes:
        store_writes_total: Successful atomic writes (appends and finalizes).
        store_write_failures_total: Failed write attempts.
        store_bytes_written_total: Bytes written across all writes.
        store_records_appended_total: Records appended during this process.
        store_finalize_total: Number of finalize calls.
        store_write_duration_ms_total: Time spent writing.
    """

    store_writes_total: int = 0
    store_write_failures_total: int = 0
    store_bytes_written_total: int = 0
    store_records_appended_total: int = 0
    store_finalize_total: int = 0
    store_write_duration_ms_total: float = 0.0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_write(self, bytes_written: int, duration_ms: float) -> None:
        """Record a successful write."""
        self.store_writes_total += 1
        self.store_bytes_written_total += bytes_written
        self.store_write_duration_ms_total += duration_ms

    def record_write_failure(self) -> None:
        """Record a failed write attempt."""
        self.store_write_failures_total += 1

    def record_append(self, count: int) -> None:
        """Record records appended."""
        self.store_records_appended_total += count

    def record_finalize(self) -> None:
        """Record a finalize call."""
        self.store_finalize_total += 1

    def to_dict(self) -> dict[str, int | float]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "store_writes_total": self.store_writes_total,
            "store_write_failures_total": self.store_write_failures_total,
            "store_bytes_written_total": self.store_bytes_written_total,
            "store_records_appended_total": self.store_records_appended_total,
            "store_finalize_total": self.store_finalize_total,
            "store_write_duration_ms_total": round(
                self.store_write_duration_ms_total, 2
            ),
        }
