"""Validated run configuration for the harvester."""

from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.features.fetch.config import FetchConfig


DEFAULT_PAGE_SIZE = 1000
DEFAULT_OUTPUT_STEM = "programs"
DEFAULT_MAX_CONSECUTIVE_FAILURES = 3


class SortOrder(str, Enum):
    """Listing the scratchpads are harvested from.

    Values are the names accepted on the command line; ``code`` is the
    numeric sort parameter the listing endpoint expects.
    """

    RECENT = "recent"
    HOT = "hot"
    CONTESTS = "contests"
    TOP = "top"

    @property
    def code(self) -> int:
        """Get the endpoint's numeric sort code."""
        return _SORT_CODES[self]


_SORT_CODES: dict[SortOrder, int] = {
    SortOrder.RECENT: 2,
    SortOrder.HOT: 3,
    SortOrder.CONTESTS: 4,
    SortOrder.TOP: 5,
}


def resolve_output_path(output: str | Path) -> Path:
    """Append the ``.json`` suffix when the output name has none.

    Args:
        output: Output name or path given by the operator.

    Returns:
        Store file path.
    """
    path = Path(output)
    if path.suffix.lower() != ".json":
        path = path.with_name(path.name + ".json")
    return path


class HarvestConfig(BaseModel):
    """Options for one harvest run.

    ``budget`` of None means unbounded: the run ends when the listing is
    exhausted or the operator cancels it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    output_path: Path = Field(
        default_factory=lambda: resolve_output_path(DEFAULT_OUTPUT_STEM),
        description="Store file path",
    )
    page_size: Annotated[int, Field(ge=1, description="Items requested per page")] = (
        DEFAULT_PAGE_SIZE
    )
    budget: (
        Annotated[int, Field(ge=1, description="Maximum records to harvest this run")]
        | None
    ) = None
    start_cursor: str | None = Field(
        default=None, description="Cursor overriding the stored resume point"
    )
    overwrite: bool = Field(default=False, description="Discard any prior store")
    sort: SortOrder = SortOrder.TOP
    max_consecutive_failures: Annotated[int, Field(ge=1, le=100)] = (
        DEFAULT_MAX_CONSECUTIVE_FAILURES
    )
    fetch: FetchConfig = Field(default_factory=FetchConfig)

    @field_validator("start_cursor")
    @classmethod
    def blank_cursor_is_none(cls, v: str | None) -> str | None:
        """Treat an empty cursor as no cursor."""
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_budget(self) -> "HarvestConfig":
        """Ensure the budget allows at least one full page."""
        if self.budget is not None and self.page_size > self.budget:
            msg = (
                f"page size ({self.page_size}) must be equal to or less than "
                f"the maximum ({self.budget})"
            )
            raise ValueError(msg)
        return self

    @property
    def resume(self) -> bool:
        """Check if the stored checkpoint decides where the run starts."""
        return self.start_cursor is None and not self.overwrite
