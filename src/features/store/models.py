"""Data models for the checkpoint store."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# A normalized scratchpad; persisted as a free-form JSON object.
Record = dict[str, Any]

CHECKPOINT_KEY = "cursor"


class Checkpoint(BaseModel):
    """Trailing store element holding the resume position.

    A ``None`` cursor marks a listing that was harvested to its end.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cursor: str | None = Field(
        default=None, min_length=1, description="Continuation token to resume from"
    )

    @property
    def exhausted(self) -> bool:
        """Check if the listing was harvested to its end."""
        return self.cursor is None

    @classmethod
    def from_element(cls, element: object) -> "Checkpoint | None":
        """Parse a store element as a checkpoint.

        Args:
            element: Decoded JSON element.

        Returns:
            Checkpoint if the element is well-formed, None otherwise.
        """
        if not isinstance(element, dict) or set(element) != {CHECKPOINT_KEY}:
            return None
        cursor = element[CHECKPOINT_KEY]
        if cursor is None:
            return cls(cursor=None)
        if isinstance(cursor, str) and cursor:
            return cls(cursor=cursor)
        return None

    def to_element(self) -> dict[str, str | None]:
        """Convert to the persisted JSON element."""
        return {CHECKPOINT_KEY: self.cursor}


@dataclass(frozen=True)
class ResumePoint:
    """What a prior store tells a new run.

    Attributes:
        records: Records already persisted, in order.
        checkpoint: Trailing checkpoint, if one was read.
    """

    records: list[Record] = field(default_factory=list)
    checkpoint: Checkpoint | None = None

    @property
    def cursor(self) -> str | None:
        """Get the cursor to resume from (None = start of listing)."""
        return self.checkpoint.cursor if self.checkpoint else None

    @property
    def exhausted(self) -> bool:
        """Check if the prior run reached the end of the listing."""
        return self.checkpoint is not None and self.checkpoint.exhausted

    @property
    def is_fresh(self) -> bool:
        """Check if there is no prior run to resume."""
        return not self.records and self.checkpoint is None


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one atomic store write."""

    path: str
    bytes_written: int
    sha256: str
    elements: int
