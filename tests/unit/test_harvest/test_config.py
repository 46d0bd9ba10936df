"""Unit tests for run configuration and environment settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from src.harvest.config import HarvestConfig, SortOrder, resolve_output_path
from src.settings import AppSettings


class TestSortOrder:
    """Tests for sort order codes."""

    @pytest.mark.parametrize(
        ("order", "code"),
        [
            (SortOrder.RECENT, 2),
            (SortOrder.HOT, 3),
            (SortOrder.CONTESTS, 4),
            (SortOrder.TOP, 5),
        ],
    )
    def test_codes(self, order: SortOrder, code: int) -> None:
        """Test that each sort order maps to the endpoint's code."""
        assert order.code == code

    def test_lookup_by_name(self) -> None:
        """Test that command-line names resolve to sort orders."""
        assert SortOrder("contests") is SortOrder.CONTESTS


class TestResolveOutputPath:
    """Tests for output path resolution."""

    def test_appends_json_suffix(self) -> None:
        """Test that a bare name gets the .json suffix."""
        assert resolve_output_path("programs") == Path("programs.json")

    def test_keeps_existing_suffix(self) -> None:
        """Test that an explicit .json path is kept."""
        assert resolve_output_path("out/data.json") == Path("out/data.json")

    def test_appends_after_other_suffix(self) -> None:
        """Test that other suffixes are kept and .json appended."""
        assert resolve_output_path("dump.v2") == Path("dump.v2.json")


class TestHarvestConfig:
    """Tests for HarvestConfig validation."""

    def test_defaults(self) -> None:
        """Test default options."""
        config = HarvestConfig()

        assert config.output_path == Path("programs.json")
        assert config.page_size == 1000
        assert config.budget is None
        assert config.sort is SortOrder.TOP
        assert config.max_consecutive_failures == 3
        assert config.resume is True

    def test_page_size_must_not_exceed_budget(self) -> None:
        """Test that a page larger than the budget is rejected."""
        with pytest.raises(ValidationError, match="must be equal to or less than"):
            HarvestConfig(page_size=500, budget=100)

    def test_page_size_equal_to_budget(self) -> None:
        """Test that a page equal to the budget is accepted."""
        config = HarvestConfig(page_size=100, budget=100)

        assert config.budget == 100

    @pytest.mark.parametrize(
        "options",
        [
            {"page_size": 0},
            {"budget": 0},
            {"max_consecutive_failures": 0},
            {"unknown_option": True},
        ],
    )
    def test_invalid_options(self, options: dict[str, object]) -> None:
        """Test that invalid options are rejected."""
        with pytest.raises(ValidationError):
            HarvestConfig(**options)  # type: ignore[arg-type]

    def test_blank_cursor_is_none(self) -> None:
        """Test that an empty cursor means no override."""
        config = HarvestConfig(start_cursor="  ")

        assert config.start_cursor is None
        assert config.resume is True

    def test_cursor_disables_resume(self) -> None:
        """Test that an explicit cursor overrides the stored checkpoint."""
        assert HarvestConfig(start_cursor="abc").resume is False

    def test_overwrite_disables_resume(self) -> None:
        """Test that overwrite ignores the stored checkpoint."""
        assert HarvestConfig(overwrite=True).resume is False

    def test_frozen(self) -> None:
        """Test that the config is immutable."""
        config = HarvestConfig()

        with pytest.raises(ValidationError):
            config.page_size = 10  # type: ignore[misc]


class TestAppSettings:
    """Tests for environment settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default endpoint settings."""
        for name in (
            "HARVEST_LISTING_URL",
            "HARVEST_TOPIC_ID",
            "HARVEST_USER_AGENT",
            "HARVEST_TIMEOUT_SECONDS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = AppSettings(_env_file=None)  # type: ignore[call-arg]

        assert settings.listing_url.endswith("/api/internal/scratchpads/top")
        assert settings.topic_id == "xffde7c31"
        assert settings.timeout_seconds == 30

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that HARVEST_* variables override the defaults."""
        monkeypatch.setenv("HARVEST_LISTING_URL", "http://127.0.0.1:9/listing")
        monkeypatch.setenv("HARVEST_TIMEOUT_SECONDS", "5")

        settings = AppSettings(_env_file=None)  # type: ignore[call-arg]

        assert settings.listing_url == "http://127.0.0.1:9/listing"
        assert settings.timeout_seconds == 5
