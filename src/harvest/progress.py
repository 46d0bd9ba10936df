"""Operator-facing progress display."""

import sys
from types import TracebackType
from typing import Any

import click

from src.harvest.state import RunSnapshot


class ClickProgress:
    """Shows harvest progress on stderr.

    With a budget the display is a progress bar towards it; without one it
    is a running record count.
    """

    def __init__(self, budget: int | None, enabled: bool = True) -> None:
        """Initialize the display.

        Args:
            budget: Record budget of the run (None = unbounded).
            enabled: Whether to draw anything at all.
        """
        self._budget = budget
        self._enabled = enabled
        self._shown = 0
        self._bar: Any = None

    def __enter__(self) -> "ClickProgress":
        if self._enabled and self._budget is not None:
            self._bar = click.progressbar(
                length=self._budget,
                label="Harvesting",
                show_pos=True,
                show_percent=True,
                file=sys.stderr,
            )
            self._bar.__enter__()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._bar is not None:
            self._bar.__exit__(exc_type, exc_val, exc_tb)
            self._bar = None
        elif self._enabled and self._shown:
            click.echo(err=True)

    def on_page(self, snapshot: RunSnapshot) -> None:
        """Advance the display to the snapshot's record count."""
        if not self._enabled:
            return

        if self._bar is not None:
            # The last page may overshoot the budget; the bar stops at it
            target = min(snapshot.produced, self._budget or snapshot.produced)
            self._bar.update(target - self._shown)
            self._shown = target
            return

        self._shown = snapshot.produced
        click.echo(
            f"\rHarvested {snapshot.produced} records "
            f"({snapshot.pages_persisted} pages)",
            nl=False,
            err=True,
        )
