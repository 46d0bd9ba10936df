"""Unit tests for checkpoint store models and JSON serialization."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.features.store.io import json_default
from src.features.store.models import Checkpoint, ResumePoint


class TestCheckpointFromElement:
    """Tests for recognizing the trailing checkpoint element."""

    def test_cursor_string(self) -> None:
        """Test a checkpoint carrying a cursor."""
        checkpoint = Checkpoint.from_element({"cursor": "abc"})

        assert checkpoint is not None
        assert checkpoint.cursor == "abc"
        assert checkpoint.exhausted is False

    def test_null_cursor_means_exhausted(self) -> None:
        """Test that a null cursor marks an exhausted listing."""
        checkpoint = Checkpoint.from_element({"cursor": None})

        assert checkpoint is not None
        assert checkpoint.exhausted is True

    @pytest.mark.parametrize(
        "element",
        [
            {"cursor": ""},
            {"cursor": 42},
            {"cursor": "abc", "title": "extra key"},
            {"title": "a record"},
            {},
            ["cursor"],
            "cursor",
            None,
        ],
    )
    def test_malformed_elements_rejected(self, element: object) -> None:
        """Test that anything but exactly {"cursor": str|null} is rejected."""
        assert Checkpoint.from_element(element) is None

    def test_round_trip_element(self) -> None:
        """Test to_element produces the persisted shape."""
        assert Checkpoint(cursor="xyz").to_element() == {"cursor": "xyz"}
        assert Checkpoint(cursor=None).to_element() == {"cursor": None}

    def test_empty_cursor_invalid(self) -> None:
        """Test that an empty cursor cannot be constructed."""
        with pytest.raises(ValidationError):
            Checkpoint(cursor="")


class TestResumePoint:
    """Tests for ResumePoint properties."""

    def test_fresh(self) -> None:
        """Test an empty resume point."""
        point = ResumePoint()

        assert point.is_fresh is True
        assert point.cursor is None
        assert point.exhausted is False

    def test_with_checkpoint(self) -> None:
        """Test a resume point with records and a cursor."""
        point = ResumePoint(records=[{"id": 1}], checkpoint=Checkpoint(cursor="c1"))

        assert point.is_fresh is False
        assert point.cursor == "c1"

    def test_exhausted(self) -> None:
        """Test a resume point from a finished harvest."""
        point = ResumePoint(records=[{"id": 1}], checkpoint=Checkpoint(cursor=None))

        assert point.exhausted is True
        assert point.cursor is None


class TestJsonDefault:
    """Tests for datetime serialization."""

    def test_utc_datetime_uses_z_suffix(self) -> None:
        """Test aware UTC datetimes are written with a Z suffix."""
        value = datetime(2015, 3, 4, 5, 6, 7, 890000, tzinfo=UTC)

        assert json_default(value) == "2015-03-04T05:06:07.890Z"

    def test_offset_datetime_converted_to_utc(self) -> None:
        """Test aware datetimes with an offset are converted to UTC."""
        value = datetime(2015, 3, 4, 8, 0, 0, tzinfo=timezone(timedelta(hours=3)))

        assert json_default(value) == "2015-03-04T05:00:00.000Z"

    def test_unsupported_type_raises(self) -> None:
        """Test that unknown types still raise TypeError."""
        with pytest.raises(TypeError):
            json_default(object())
