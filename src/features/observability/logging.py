"""Structured logging configuration."""

import logging
import sys
from typing import Any, TextIO

import structlog


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog and the standard library root logger.

    Logs share stderr with the progress bar; stdout carries only the run
    summary. JSON lines are the default, the console renderer is meant for
    interactive runs.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=output.isatty()))

    # Not cached: the CLI reconfigures the level per command
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=level)
    # httpx logs every request at INFO; the fetcher already does
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def bind_run_context(run_id: str, **context: Any) -> None:
    """Bind run-wide fields to every subsequent log event.

    Args:
        run_id: Unique run identifier.
        **context: Extra run-wide fields, such as the output path.
    """
    structlog.contextvars.bind_contextvars(run_id=run_id, **context)


def clear_run_context() -> None:
    """Clear all bound run context."""
    structlog.contextvars.clear_contextvars()
