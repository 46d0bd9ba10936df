"""Error types for the harvest pipeline."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class HarvestErrorClass(str, Enum):
    """Classification of harvest errors.

    - TRANSPORT: Page fetch failed after retries
    - DECODE: Page body is not a valid listing response
    - PERSISTENCE: Store could not be written
    """

    TRANSPORT = "TRANSPORT"
    DECODE = "DECODE"
    PERSISTENCE = "PERSISTENCE"


class HarvestError(Exception):
    """Base exception for harvest errors.

    Provides structured error information for logging and the run report.
    """

    def __init__(
        self,
        error_class: HarvestErrorClass,
        message: str,
        cursor: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the harvest error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            cursor: Cursor of the page being fetched, if any.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.cursor = cursor
        self.details = details or {}

    def to_dict(
        self,
    ) -> dict[str, str | int | bool | None | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "cursor": self.cursor,
            "details": self.details,
        }


class ListingDecodeError(HarvestError):
    """Page body could not be decoded into items and a cursor.

    Handled exactly like a transport failure: the page is dropped.
    """

    def __init__(
        self,
        message: str,
        cursor: str | None = None,
        snippet: str | None = None,
    ) -> None:
        """Initialize the decode error.

        Args:
            message: Human-readable error message.
            cursor: Cursor of the page being decoded.
            snippet: Start of the offending body.
        """
        details: dict[str, str | int | bool | None] = {}
        if snippet is not None:
            details["snippet"] = snippet
        super().__init__(
            error_class=HarvestErrorClass.DECODE,
            message=message,
            cursor=cursor,
            details=details,
        )
        self.snippet = snippet


class ErrorRecord(BaseModel):
    """Serializable error record for the run report."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: HarvestErrorClass = Field(description="Error classification")
    message: Annotated[str, Field(min_length=1, description="Error message")]
    cursor: str | None = Field(default=None, description="Cursor of the failed page")
    details: dict[str, str | int | bool | None] = Field(
        default_factory=dict, description="Additional error details"
    )

    @classmethod
    def from_exception(cls, error: HarvestError) -> "ErrorRecord":
        """Create an ErrorRecord from a HarvestError exception."""
        return cls(
            error_class=error.error_class,
            message=error.message,
            cursor=error.cursor,
            details=error.details,
        )
