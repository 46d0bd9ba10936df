"""Unit tests for the progress display."""

import pytest

from src.harvest.progress import ClickProgress
from src.harvest.state import RunSnapshot


def snapshot(produced: int, pages: int) -> RunSnapshot:
    """Build a run snapshot."""
    return RunSnapshot(
        produced=produced,
        pages_persisted=pages,
        next_cursor=f"c{pages}",
        elapsed_ms=1.0,
    )


class TestClickProgress:
    """Tests for ClickProgress."""

    def test_running_count_without_budget(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that an unbounded run shows a running record count."""
        with ClickProgress(budget=None) as progress:
            progress.on_page(snapshot(10, 1))
            progress.on_page(snapshot(20, 2))

        captured = capsys.readouterr()
        assert "Harvested 20 records (2 pages)" in captured.err
        assert captured.out == ""

    def test_bar_with_budget(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that a bounded run draws a bar and tolerates overshoot."""
        with ClickProgress(budget=15) as progress:
            progress.on_page(snapshot(10, 1))
            progress.on_page(snapshot(20, 2))

        assert "Harvesting" in capsys.readouterr().err

    def test_disabled_draws_nothing(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that a disabled display writes nothing."""
        with ClickProgress(budget=10, enabled=False) as progress:
            progress.on_page(snapshot(10, 1))

        captured = capsys.readouterr()
        assert captured.err == ""
        assert captured.out == ""
