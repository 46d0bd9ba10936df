"""Logging setup and end-of-run metrics for the harvester."""

from src.features.observability.logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
)
from src.features.observability.metrics import collect_metrics, reset_metrics


__all__ = [
    "bind_run_context",
    "clear_run_context",
    "collect_metrics",
    "configure_logging",
    "reset_metrics",
]
