"""Unit tests for record normalization."""

from datetime import UTC, datetime
from typing import Any

import pytest

from src.harvest.metrics import HarvestMetrics
from src.harvest.normalizer import (
    EXCLUDED_FIELDS,
    RecordNormalizer,
    apply_transform,
    author_id,
    created_at,
    program_id,
    thumbnail_id,
)


def make_raw_item(**overrides: Any) -> dict[str, Any]:
    """Build a well-formed listing item."""
    item: dict[str, Any] = {
        "title": "Bouncing Ball",
        "url": "https://www.khanacademy.org/computer-programming/bouncing-ball/4812398",
        "thumb": "/computer-programming/bouncing-ball/4812398/5738600293466112.png",
        "created": "2015-07-09T18:31:05Z",
        "authorKaid": "kaid_123456789",
        "authorNickname": "Ada",
        "sumVotesIncremented": 12,
        "spinoffCount": 3,
        "flaggedByUser": False,
        "key": "ag5zfmtoYW4tYWNhZGVteXI",
        "translatedTitle": "Pelota",
    }
    item.update(overrides)
    return item


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset harvest metrics before each test."""
    HarvestMetrics.reset()


@pytest.fixture
def normalizer() -> RecordNormalizer:
    """Create a normalizer."""
    return RecordNormalizer(run_id="test-run")


class TestFieldTransforms:
    """Tests for the individual field transforms."""

    def test_thumbnail_id(self) -> None:
        """Test that the thumbnail id is the fifth path segment without extension."""
        assert (
            thumbnail_id("/computer-programming/slug/4812398/5738600293466112.png")
            == "5738600293466112"
        )

    def test_program_id(self) -> None:
        """Test that the program id is the sixth URL segment."""
        assert (
            program_id("https://www.khanacademy.org/computer-programming/slug/4812398")
            == "4812398"
        )

    def test_created_at(self) -> None:
        """Test that creation strings parse to aware datetimes."""
        assert created_at("2015-07-09T18:31:05Z") == datetime(
            2015, 7, 9, 18, 31, 5, tzinfo=UTC
        )

    def test_author_id(self) -> None:
        """Test that the namespace prefix is stripped."""
        assert author_id("kaid_123456789") == "123456789"

    def test_author_id_splits_once(self) -> None:
        """Test that only the first delimiter is consumed."""
        assert author_id("kaid_12_34") == "12_34"

    @pytest.mark.parametrize(
        ("transform", "value"),
        [
            (thumbnail_id, "/too/short.png"),
            (thumbnail_id, "/a/b/c/.png"),
            (program_id, "https://example.org/short"),
            (created_at, "yesterday-ish"),
            (author_id, "kaid123"),
            (author_id, "kaid_"),
            (author_id, 123),
            (program_id, None),
        ],
    )
    def test_malformed_values_fail(self, transform: Any, value: Any) -> None:
        """Test that malformed values produce a failed result, not an exception."""
        result = apply_transform(transform, value)

        assert result.ok is False
        assert result.value == value
        assert result.error


class TestRecordNormalizer:
    """Tests for whole-record normalization."""

    def test_well_formed_item(self, normalizer: RecordNormalizer) -> None:
        """Test that every transform is applied to a well-formed item."""
        record = normalizer.normalize(make_raw_item())

        assert record["url"] == "4812398"
        assert record["thumb"] == "5738600293466112"
        assert record["created"] == datetime(2015, 7, 9, 18, 31, 5, tzinfo=UTC)
        assert record["authorKaid"] == "123456789"
        assert record["title"] == "Bouncing Ball"
        assert record["sumVotesIncremented"] == 12

    def test_excluded_fields_dropped(self, normalizer: RecordNormalizer) -> None:
        """Test that excluded fields never appear in a record."""
        record = normalizer.normalize(make_raw_item())

        assert EXCLUDED_FIELDS == {"flaggedByUser", "key", "translatedTitle"}
        assert EXCLUDED_FIELDS.isdisjoint(record)

    def test_excluded_fields_dropped_from_malformed_item(
        self, normalizer: RecordNormalizer
    ) -> None:
        """Test that exclusion holds even when every transform fails."""
        record = normalizer.normalize(
            make_raw_item(url=None, thumb=1, created="?", authorKaid="x")
        )

        assert EXCLUDED_FIELDS.isdisjoint(record)

    @pytest.mark.parametrize(
        ("field", "bad_value"),
        [
            ("created", "not a date"),
            ("thumb", "no-slashes.png"),
            ("url", "https://short"),
            ("authorKaid", "nodelimiter"),
        ],
    )
    def test_field_isolation(
        self, normalizer: RecordNormalizer, field: str, bad_value: str
    ) -> None:
        """Test that one malformed field keeps its raw value and nothing else changes."""
        good = normalizer.normalize(make_raw_item())
        bad = normalizer.normalize(make_raw_item(**{field: bad_value}))

        assert bad[field] == bad_value
        assert {k: v for k, v in bad.items() if k != field} == {
            k: v for k, v in good.items() if k != field
        }

    def test_field_failure_counted(self, normalizer: RecordNormalizer) -> None:
        """Test that failed transforms are counted by field name."""
        normalizer.normalize(make_raw_item(created="never"))
        normalizer.normalize(make_raw_item(created="never"))

        assert HarvestMetrics.get_instance().field_failures["created"] == 2

    def test_missing_fields_left_missing(self, normalizer: RecordNormalizer) -> None:
        """Test that absent transformed fields are not invented."""
        record = normalizer.normalize({"title": "Only a title"})

        assert record == {"title": "Only a title"}

    def test_input_not_mutated(self, normalizer: RecordNormalizer) -> None:
        """Test that the raw item is left untouched."""
        raw = make_raw_item()
        snapshot = dict(raw)

        normalizer.normalize(raw)

        assert raw == snapshot

    def test_normalize_page_preserves_order(self, normalizer: RecordNormalizer) -> None:
        """Test that page normalization keeps item order."""
        items = [make_raw_item(title=f"Program {i}") for i in range(5)]

        records = normalizer.normalize_page(items)

        assert [record["title"] for record in records] == [
            f"Program {i}" for i in range(5)
        ]
