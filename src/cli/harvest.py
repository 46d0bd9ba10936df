"""CLI commands for the scratchpad harvester."""

import json
import logging
import sys
import uuid
from dataclasses import dataclass

import click
import structlog
from pydantic import ValidationError

from src.features.fetch.client import HttpFetcher
from src.features.fetch.config import FetchConfig
from src.features.observability import (
    bind_run_context,
    clear_run_context,
    collect_metrics,
    configure_logging,
)
from src.features.store import (
    CheckpointStore,
    CheckpointStoreError,
    ResumeIntegrityError,
    ResumePoint,
    read_store,
)
from src.harvest.config import (
    DEFAULT_OUTPUT_STEM,
    DEFAULT_PAGE_SIZE,
    HarvestConfig,
    SortOrder,
    resolve_output_path,
)
from src.harvest.engine import EngineResult, PaginationEngine
from src.harvest.listing import ListingClient
from src.harvest.normalizer import RecordNormalizer
from src.harvest.progress import ClickProgress
from src.harvest.shutdown import ShutdownCoordinator, ShutdownReport
from src.harvest.state import RunState
from src.settings import AppSettings, get_settings


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


@dataclass
class RunOptions:
    """Options for the run command."""

    output: str
    page_size: int
    budget: int | None
    start_cursor: str | None
    sort: str
    overwrite: bool
    json_logs: bool
    verbose: bool


def _setup_logging_and_context(
    options: RunOptions, run_id: str
) -> structlog.typing.FilteringBoundLogger:
    """Set up logging and return bound logger.

    Args:
        options: Run options.
        run_id: Unique run identifier.

    Returns:
        Bound logger with run context.
    """
    log_level = logging.DEBUG if options.verbose else logging.INFO
    configure_logging(level=log_level, json_format=options.json_logs)
    bind_run_context(run_id)

    return logger.bind(  # type: ignore[no-any-return]
        run_id=run_id,
        component=COMPONENT_CLI,
        command="run",
    )


def _build_config(
    options: RunOptions,
    settings: AppSettings,
    log: structlog.typing.FilteringBoundLogger,
) -> HarvestConfig:
    """Validate run options, exit on failure.

    Args:
        options: Run options from the command line.
        settings: Environment settings.
        log: Logger for error reporting.

    Returns:
        Validated harvest configuration.
    """
    try:
        return HarvestConfig(
            output_path=resolve_output_path(options.output),
            page_size=options.page_size,
            budget=options.budget,
            start_cursor=options.start_cursor,
            overwrite=options.overwrite,
            sort=SortOrder(options.sort),
            fetch=FetchConfig(
                user_agent=settings.user_agent,
                timeout_seconds=settings.timeout_seconds,
            ),
        )
    except ValidationError as e:
        log.warning("options_invalid", error_count=e.error_count())
        click.echo("Invalid options:", err=True)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            message = error["msg"].removeprefix("Value error, ")
            click.echo(
                f"  - {location}: {message}" if location else f"  - {message}",
                err=True,
            )
        sys.exit(1)


def _open_store(
    config: HarvestConfig,
    run_id: str,
    log: structlog.typing.FilteringBoundLogger,
) -> tuple[CheckpointStore, ResumePoint]:
    """Open or create the store, exit if it cannot be resumed.

    Args:
        config: Harvest configuration.
        run_id: Run identifier.
        log: Logger instance.

    Returns:
        Tuple of the open store and what it holds.
    """
    try:
        return CheckpointStore.open_or_reset(
            config.output_path,
            overwrite=config.overwrite,
            resume=config.resume,
            run_id=run_id,
        )
    except CheckpointStoreError as e:
        log.error("store_open_failed", **e.to_dict())
        click.echo(f"Error: {e.message}", err=True)
        if isinstance(e, ResumeIntegrityError):
            click.echo(
                "Use --cursor to continue from a known cursor, "
                "or --overwrite to start a new store.",
                err=True,
            )
        sys.exit(1)


def _print_summary(report: ShutdownReport, result: EngineResult) -> None:
    """Print the end-of-run summary."""
    click.echo(
        f"Completed harvesting {report.records_produced} records "
        f"in {report.elapsed_ms:.0f}ms ({report.reason.value})."
    )
    if report.exhausted:
        click.echo("Listing exhausted.")
    else:
        click.echo(f"Last cursor: {report.last_cursor}")

    if report.reason.is_failure:
        detail = result.last_error.message if result.last_error else report.error
        click.echo(f"Run halted: {detail}", err=True)
    elif not report.finalized:
        click.echo(f"Checkpoint could not be written: {report.error}", err=True)


def _execute_run(options: RunOptions) -> None:
    """Execute a harvest run with the given options.

    Args:
        options: Run options.
    """
    run_id = str(uuid.uuid4())
    log = _setup_logging_and_context(options, run_id)
    settings = get_settings()
    config = _build_config(options, settings, log)

    log.info(
        "harvest_run_started",
        output_path=str(config.output_path),
        page_size=config.page_size,
        budget=config.budget,
        sort=config.sort.value,
        start_cursor=config.start_cursor,
        overwrite=config.overwrite,
        listing_url=settings.listing_url,
    )

    store, resume_point = _open_store(config, run_id, log)

    if config.resume and resume_point.exhausted:
        log.info("harvest_already_complete", records=store.record_count)
        click.echo(
            f"{config.output_path} already holds the whole listing "
            f"({store.record_count} records). Use --cursor to continue from a "
            "known cursor, or --overwrite to start over."
        )
        return

    start_cursor = config.start_cursor if config.start_cursor else resume_point.cursor
    if resume_point.records:
        log.info(
            "harvest_resuming",
            records=len(resume_point.records),
            cursor=start_cursor,
        )

    state = RunState(
        page_size=config.page_size,
        budget=config.budget,
        start_cursor=start_cursor,
    )
    coordinator = ShutdownCoordinator(state, run_id=run_id)

    with (
        HttpFetcher(config.fetch, run_id=run_id, stop_event=state.stopping) as fetcher,
        ClickProgress(config.budget, enabled=sys.stderr.isatty()) as progress,
    ):
        listing = ListingClient(
            fetcher=fetcher,
            listing_url=settings.listing_url,
            topic_id=settings.topic_id,
            sort=config.sort,
            page_size=config.page_size,
            run_id=run_id,
        )
        engine = PaginationEngine(
            listing=listing,
            normalizer=RecordNormalizer(run_id=run_id),
            store=store,
            state=state,
            coordinator=coordinator,
            run_id=run_id,
            max_consecutive_failures=config.max_consecutive_failures,
            observer=progress,
        )

        # A second interrupt during finalize must not abort the write
        with coordinator.signal_handlers():
            result = engine.run()
            report = coordinator.finalize(store, exhausted=result.exhausted)

    log.info(
        "harvest_run_complete",
        fetches_issued=result.fetches_issued,
        exit_code=report.exit_code,
        metrics=collect_metrics(),
        **report.to_dict(),
    )
    _print_summary(report, result)
    sys.exit(report.exit_code)


@click.group()
@click.version_option(version="1.0.0")
def cli() -> None:
    """Scratchpad listing harvester CLI."""


@cli.command()
@click.option(
    "--max",
    "-m",
    "budget",
    type=int,
    default=None,
    help="Maximum number of records to harvest (default: unbounded).",
)
@click.option(
    "--limit",
    "-l",
    "page_size",
    type=int,
    default=DEFAULT_PAGE_SIZE,
    show_default=True,
    help="Records requested per page.",
)
@click.option(
    "--cursor",
    "-c",
    "start_cursor",
    type=str,
    default=None,
    help="Cursor to start from, overriding the stored checkpoint.",
)
@click.option(
    "--sort",
    "-s",
    type=click.Choice([order.value for order in SortOrder]),
    default=SortOrder.TOP.value,
    show_default=True,
    help="Listing to harvest.",
)
@click.option(
    "--output",
    "-o",
    type=str,
    default=DEFAULT_OUTPUT_STEM,
    show_default=True,
    help="Store file (.json is appended when missing).",
)
@click.option(
    "--overwrite",
    is_flag=True,
    help="Discard any existing store and start from the first page.",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def run(  # noqa: PLR0913
    budget: int | None,
    page_size: int,
    start_cursor: str | None,
    sort: str,
    output: str,
    overwrite: bool,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Harvest the listing into a resumable JSON store.

    A run resumes from the checkpoint stored at the end of the output file
    unless --cursor or --overwrite is given. Interrupting a run (Ctrl-C)
    keeps every page harvested so far and the cursor to continue from.
    """
    options = RunOptions(
        output=output,
        page_size=page_size,
        budget=budget,
        start_cursor=start_cursor,
        sort=sort,
        overwrite=overwrite,
        json_logs=json_logs,
        verbose=verbose,
    )
    try:
        _execute_run(options)
    finally:
        clear_run_context()


@cli.command()
@click.option(
    "--output",
    "-o",
    type=str,
    default=DEFAULT_OUTPUT_STEM,
    show_default=True,
    help="Store file (.json is appended when missing).",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
def inspect(output: str, json_output: bool) -> None:
    """Display the record count and checkpoint of a store."""
    configure_logging(level=logging.WARNING, json_format=False)
    path = resolve_output_path(output)

    resumable = True
    try:
        try:
            resume_point = read_store(path, resume=True)
        except ResumeIntegrityError:
            resumable = False
            resume_point = read_store(path, resume=False)
    except CheckpointStoreError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if resume_point.is_fresh:
        status = "empty"
    elif not resumable:
        status = "no_checkpoint"
    elif resume_point.exhausted:
        status = "exhausted"
    else:
        status = "resumable"

    if json_output:
        report = {
            "path": str(path),
            "records": len(resume_point.records),
            "status": status,
            "cursor": resume_point.cursor,
        }
        click.echo(json.dumps(report, indent=2))
    else:
        click.echo("Store Statistics")
        click.echo("=" * 40)
        click.echo(f"  Path: {path}")
        click.echo(f"  Records: {len(resume_point.records)}")
        click.echo(f"  Status: {status}")
        click.echo(f"  Cursor: {resume_point.cursor or 'None'}")


if __name__ == "__main__":
    cli()
