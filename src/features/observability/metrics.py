"""Aggregated metrics snapshot for end-of-run reporting."""

from typing import Any

from src.features.fetch.metrics import FetchMetrics
from src.features.store.metrics import StoreMetrics
from src.harvest.metrics import HarvestMetrics


def collect_metrics() -> dict[str, dict[str, Any]]:
    """Collect every metrics singleton into one mapping.

    Returns:
        Mapping of subsystem name to its metrics dictionary.
    """
    return {
        "fetch": FetchMetrics.get_instance().to_dict(),
        "harvest": HarvestMetrics.get_instance().to_dict(),
        "store": StoreMetrics.get_instance().to_dict(),
    }


def reset_metrics() -> None:
    """Reset every metrics singleton (primarily for testing)."""
    FetchMetrics.reset()
    HarvestMetrics.reset()
    StoreMetrics.reset()
