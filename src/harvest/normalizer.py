"""Normalization of raw listing items into persisted records.

Every field transform is guarded on its own: a malformed value is logged,
counted, and kept as-is, and the rest of the item is still normalized.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from dateutil import parser as date_parser

from src.features.store.models import Record
from src.harvest.metrics import HarvestMetrics


logger = structlog.get_logger()

# Never persisted
EXCLUDED_FIELDS: frozenset[str] = frozenset(
    {"flaggedByUser", "key", "translatedTitle"}
)

# "/computer-programming/<slug>/<program id>/<thumb id>.png"
THUMB_SEGMENT_INDEX = 4
THUMB_SUFFIX_LENGTH = len(".png")

# "https://www.khanacademy.org/computer-programming/<slug>/<program id>"
URL_SEGMENT_INDEX = 5

AUTHOR_DELIMITER = "_"


@dataclass(frozen=True)
class FieldResult:
    """Outcome of one field transform.

    Attributes:
        ok: Whether the transform succeeded.
        value: Transformed value, or the original value on failure.
        error: Failure description, if any.
    """

    ok: bool
    value: Any
    error: str | None = None

    @classmethod
    def success(cls, value: Any) -> "FieldResult":
        """Build a successful result."""
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, original: Any, error: str) -> "FieldResult":
        """Build a failed result that keeps the original value."""
        return cls(ok=False, value=original, error=error)


FieldTransform = Callable[[Any], Any]


def _require_str(value: Any) -> str:
    if not isinstance(value, str):
        msg = f"expected string, got {type(value).__name__}"
        raise TypeError(msg)
    return value


def _path_segment(value: str, index: int) -> str:
    segments = value.split("/")
    if len(segments) <= index:
        msg = f"expected at least {index + 1} path segments, got {len(segments)}"
        raise ValueError(msg)
    return segments[index]


def thumbnail_id(value: Any) -> str:
    """Extract the thumbnail identifier from a thumbnail path."""
    segment = _path_segment(_require_str(value), THUMB_SEGMENT_INDEX)
    if len(segment) <= THUMB_SUFFIX_LENGTH:
        msg = f"thumbnail segment too short: {segment!r}"
        raise ValueError(msg)
    return segment[:-THUMB_SUFFIX_LENGTH]


def program_id(value: Any) -> str:
    """Extract the program identifier from a program URL."""
    segment = _path_segment(_require_str(value), URL_SEGMENT_INDEX)
    if not segment:
        msg = "empty program id segment"
        raise ValueError(msg)
    return segment


def created_at(value: Any) -> datetime:
    """Parse an ISO-8601 creation timestamp."""
    return date_parser.isoparse(_require_str(value))


def author_id(value: Any) -> str:
    """Strip the namespace prefix from an author identifier."""
    _, delimiter, remainder = _require_str(value).partition(AUTHOR_DELIMITER)
    if not delimiter or not remainder:
        msg = f"no {AUTHOR_DELIMITER!r}-delimited author id in {value!r}"
        raise ValueError(msg)
    return remainder


FIELD_TRANSFORMS: dict[str, FieldTransform] = {
    "thumb": thumbnail_id,
    "url": program_id,
    "created": created_at,
    "authorKaid": author_id,
}


def apply_transform(transform: FieldTransform, value: Any) -> FieldResult:
    """Run a field transform, capturing failure as a tagged result.

    Args:
        transform: Transform that raises on malformed input.
        value: Raw field value.

    Returns:
        FieldResult with the transformed or original value.
    """
    try:
        return FieldResult.success(transform(value))
    except (TypeError, ValueError, OverflowError) as e:
        return FieldResult.failure(value, f"{type(e).__name__}: {e}")


class RecordNormalizer:
    """Maps raw listing items to records, one guarded transform per field."""

    def __init__(
        self,
        run_id: str,
        transforms: Mapping[str, FieldTransform] | None = None,
        excluded_fields: frozenset[str] = EXCLUDED_FIELDS,
    ) -> None:
        """Initialize the normalizer.

        Args:
            run_id: Run identifier for logging.
            transforms: Field name to transform mapping.
            excluded_fields: Field names never persisted.
        """
        self._transforms = dict(FIELD_TRANSFORMS if transforms is None else transforms)
        self._excluded_fields = excluded_fields
        self._metrics = HarvestMetrics.get_instance()
        self._log = logger.bind(component="normalizer", run_id=run_id)

    def normalize(self, raw: Mapping[str, Any]) -> Record:
        """Normalize one raw item. Never raises for malformed field values.

        Args:
            raw: Item as received from the listing.

        Returns:
            Record with transformed fields and excluded fields removed.
        """
        record: Record = {
            name: value
            for name, value in raw.items()
            if name not in self._excluded_fields
        }

        for name, transform in self._transforms.items():
            if name not in record:
                continue
            result = apply_transform(transform, record[name])
            record[name] = result.value
            if not result.ok:
                self._metrics.record_field_failure(name)
                self._log.debug(
                    "field_transform_failed",
                    field=name,
                    error=result.error,
                    item_url=raw.get("url") if name != "url" else None,
                )

        return record

    def normalize_page(self, items: list[Mapping[str, Any]]) -> list[Record]:
        """Normalize every item of a page, preserving order."""
        return [self.normalize(item) for item in items]
