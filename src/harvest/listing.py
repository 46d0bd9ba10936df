"""Client for the paginated scratchpad listing endpoint."""

import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import structlog

from src.features.fetch.client import HttpFetcher
from src.harvest.config import SortOrder
from src.harvest.errors import HarvestError, HarvestErrorClass, ListingDecodeError


logger = structlog.get_logger()

ITEMS_KEY = "scratchpads"
CURSOR_KEY = "cursor"

# Bytes of an undecodable body kept for the error report
SNIPPET_LENGTH = 200


@dataclass(frozen=True)
class ListingPage:
    """One decoded page of the listing.

    Attributes:
        items: Raw items in listing order.
        cursor: Cursor for the following page (None at the end).
        request_cursor: Cursor this page was requested with.
        skipped: Elements of the items array that were not objects.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    cursor: str | None = None
    request_cursor: str | None = None
    skipped: int = 0

    @property
    def is_last(self) -> bool:
        """Check if the listing has no further pages."""
        return self.cursor is None or not self.items


@runtime_checkable
class ListingSource(Protocol):
    """Anything that can fetch one page of the listing."""

    def fetch_page(self, cursor: str | None) -> ListingPage:
        """Fetch the page at ``cursor`` (None = first page).

        Raises:
            HarvestError: If the page could not be fetched or decoded.
        """
        ...


def decode_page(body: bytes, request_cursor: str | None) -> ListingPage:
    """Decode a listing response body.

    Args:
        body: Raw response body.
        request_cursor: Cursor the page was requested with.

    Returns:
        Decoded ListingPage.

    Raises:
        ListingDecodeError: If the body is not a listing object.
    """
    snippet = body[:SNIPPET_LENGTH].decode("utf-8", errors="replace")
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Listing body is not valid JSON: {e}"
        raise ListingDecodeError(msg, cursor=request_cursor, snippet=snippet) from e

    if not isinstance(data, dict):
        msg = f"Listing body must be an object, found {type(data).__name__}"
        raise ListingDecodeError(msg, cursor=request_cursor, snippet=snippet)

    raw_items = data.get(ITEMS_KEY)
    if not isinstance(raw_items, list):
        msg = f"Listing body has no '{ITEMS_KEY}' array"
        raise ListingDecodeError(msg, cursor=request_cursor, snippet=snippet)

    cursor = data.get(CURSOR_KEY)
    if cursor is not None and not isinstance(cursor, str):
        msg = f"Listing '{CURSOR_KEY}' must be a string, found {type(cursor).__name__}"
        raise ListingDecodeError(msg, cursor=request_cursor, snippet=snippet)

    items = [item for item in raw_items if isinstance(item, dict)]
    return ListingPage(
        items=items,
        cursor=cursor or None,
        request_cursor=request_cursor,
        skipped=len(raw_items) - len(items),
    )


class ListingClient:
    """Fetches listing pages over HTTP.

    Builds ``?sort=&limit=&topic_id=[&cursor=]`` requests and decodes the
    ``{"scratchpads": [...], "cursor": ...}`` response.
    """

    def __init__(  # noqa: PLR0913
        self,
        fetcher: HttpFetcher,
        listing_url: str,
        topic_id: str,
        sort: SortOrder,
        page_size: int,
        run_id: str,
    ) -> None:
        """Initialize the listing client.

        Args:
            fetcher: HTTP fetcher.
            listing_url: Listing endpoint URL.
            topic_id: Topic the listing is scoped to.
            sort: Listing sort order.
            page_size: Items requested per page.
            run_id: Run identifier for logging.
        """
        self._fetcher = fetcher
        self._listing_url = listing_url
        self._base_params: dict[str, str | int] = {
            "sort": sort.code,
            "limit": page_size,
            "topic_id": topic_id,
        }
        self._log = logger.bind(component="listing", run_id=run_id)

    def params_for(self, cursor: str | None) -> dict[str, str | int]:
        """Build the query parameters for a page request."""
        params = dict(self._base_params)
        if cursor:
            params["cursor"] = cursor
        return params

    def fetch_page(self, cursor: str | None) -> ListingPage:
        """Fetch and decode the page at ``cursor``.

        Args:
            cursor: Cursor of the page (None = first page).

        Returns:
            Decoded ListingPage.

        Raises:
            HarvestError: On transport failure (after retries).
            ListingDecodeError: If the body cannot be decoded.
        """
        result = self._fetcher.fetch(self._listing_url, params=self.params_for(cursor))

        if result.error is not None or not result.is_success:
            error_class = result.error.error_class.value if result.error else None
            message = result.error.message if result.error else "Unsuccessful response"
            raise HarvestError(
                error_class=HarvestErrorClass.TRANSPORT,
                message=message,
                cursor=cursor,
                details={
                    "fetch_error_class": error_class,
                    "status_code": result.status_code,
                    "attempts": result.attempts,
                },
            )

        page = decode_page(result.body_bytes, cursor)
        if page.skipped:
            self._log.warning("items_skipped", cursor=cursor, skipped=page.skipped)
        return page
