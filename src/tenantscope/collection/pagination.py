"""
Paginated collection over Graph ``@odata.nextLink`` cursors.

Pages are fetched one at a time. A page that fails to fetch ends the
pagination with a warning, and the items gathered from earlier pages are
kept: partial collection is preferred over total failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from tenantscope.cancellation import CancellationToken, is_cancelled
from tenantscope.graph.client import GraphClient
from tenantscope.graph.document import ITEMS_KEY, NEXT_LINK_KEY, RawDocument

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    """
    Outcome of a paginated collection.

    Attributes:
        items: Converted items from every page fetched, in page order
        pages_fetched: Number of pages read successfully
        error: Message of the fetch failure that stopped pagination
        exception: The exception behind error, kept for callers that re-raise
        cancelled: Whether pagination stopped because of cancellation
    """

    items: list[Any] = field(default_factory=list)
    pages_fetched: int = 0
    error: str | None = None
    exception: Exception | None = None
    cancelled: bool = False

    @property
    def truncated(self) -> bool:
        """Check whether pagination stopped before the last page."""
        return self.error is not None or self.cancelled


def endpoint_label(endpoint: str) -> str:
    """
    Derive a short name for an endpoint for use in warnings.

    >>> endpoint_label("users?$select=id&$top=999")
    'users'
    >>> endpoint_label("identity/conditionalAccess/policies")
    'policies'
    """
    path = endpoint.split("?", 1)[0].rstrip("/")
    return path.rsplit("/", 1)[-1] or endpoint


def collect_pages(
    client: GraphClient,
    endpoint: str,
    convert: Callable[[RawDocument], Any] | None = None,
    warnings: list[str] | None = None,
    cancel_token: CancellationToken | None = None,
    label: str | None = None,
    items_key: str = ITEMS_KEY,
    next_link_key: str = NEXT_LINK_KEY,
) -> PageResult:
    """
    Follow next-page cursors from an endpoint and accumulate items.

    Args:
        client: Graph client to fetch with
        endpoint: First page endpoint
        convert: Per-item conversion; items are RawDocuments if omitted
        warnings: List that receives one warning if a page fails
        cancel_token: Checked before every page fetch
        label: Name used in the warning, derived from endpoint if omitted
        items_key: Field holding the page's items
        next_link_key: Field holding the next page cursor

    Returns:
        PageResult with the items collected so far
    """
    result = PageResult()
    label = label or endpoint_label(endpoint)
    current: str | None = endpoint

    while current:
        if is_cancelled(cancel_token):
            logger.info(f"Pagination of {label} cancelled after {result.pages_fetched} pages")
            result.cancelled = True
            break

        try:
            document = RawDocument.parse(client.get_raw_json(current))
            if document is None:
                break

            for item in document.get_documents(items_key):
                result.items.append(convert(item) if convert else item)

            result.pages_fetched += 1
            current = document.get_string(next_link_key) or None

        except Exception as e:
            logger.warning(f"Error fetching page from {current}: {e}")
            result.error = str(e)
            result.exception = e
            if warnings is not None:
                warnings.append(f"Error fetching {label} page: {e}")
            break

    return result


def collect_all_pages(
    client: GraphClient,
    endpoint: str,
    convert: Callable[[RawDocument], Any] | None = None,
    warnings: list[str] | None = None,
    cancel_token: CancellationToken | None = None,
    label: str | None = None,
    items_key: str = ITEMS_KEY,
    next_link_key: str = NEXT_LINK_KEY,
) -> list[Any]:
    """
    Collect all items across pages.

    Same as collect_pages() but returns only the item list.
    """
    return collect_pages(
        client,
        endpoint,
        convert=convert,
        warnings=warnings,
        cancel_token=cancel_token,
        label=label,
        items_key=items_key,
        next_link_key=next_link_key,
    ).items
