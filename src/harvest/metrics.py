"""Metrics collection for the harvest pipeline."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock

from src.harvest.errors import HarvestErrorClass


_metrics_instance: "HarvestMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class HarvestMetrics:
    """Thread-safe metrics for pagination and normalization.

    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    pages_fetched: int = 0
    pages_persisted: int = 0
    pages_discarded: int = 0
    prefetches_scheduled: int = 0
    records_total: int = 0

    # Failed cycles by error class
    failed_cycles: Counter[str] = field(default_factory=Counter)

    # Field transforms that kept the raw value, by field name
    field_failures: Counter[str] = field(default_factory=Counter)

    @classmethod
    def get_instance(cls) -> "HarvestMetrics":
        """Get the singleton instance (thread-safe)."""
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_page_fetched(self) -> None:
        """Record a page received successfully."""
        with self._lock:
            self.pages_fetched += 1

    def record_page_persisted(self, records: int) -> None:
        """Record a page appended to the store.

        Args:
            records: Number of records in the page.
        """
        with self._lock:
            self.pages_persisted += 1
            self.records_total += records

    def record_page_discarded(self) -> None:
        """Record a fetched or in-flight page dropped at shutdown."""
        with self._lock:
            self.pages_discarded += 1

    def record_prefetch(self) -> None:
        """Record a lookahead fetch scheduled before processing."""
        with self._lock:
            self.prefetches_scheduled += 1

    def record_failed_cycle(self, error_class: HarvestErrorClass) -> None:
        """Record a cycle whose page was dropped."""
        with self._lock:
            self.failed_cycles[error_class.value] += 1

    def record_field_failure(self, field_name: str) -> None:
        """Record a field transform that fell back to the raw value."""
        with self._lock:
            self.field_failures[field_name] += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "pages_fetched": self.pages_fetched,
                "pages_persisted": self.pages_persisted,
                "pages_discarded": self.pages_discarded,
                "prefetches_scheduled": self.prefetches_scheduled,
                "records_total": self.records_total,
                "failed_cycles": dict(self.failed_cycles),
                "field_failures": dict(self.field_failures),
            }
