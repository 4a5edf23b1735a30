"""
Best-effort enrichment of already-collected entities.

An enrichment pass fetches optional secondary data (sign-in activity, role
membership, risk state...), builds a lookup keyed by object id and
overlays matched fields onto entities held in memory. Each pass runs in
its own failure boundary: a failure becomes one warning and the entities
keep their enrichment fields unset.

Failures caused by missing licenses or permissions are expected on many
tenants and are reported with an explanatory message. They are told apart
by substring markers in the error text, since Graph does not use a stable
error code for them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, TypeVar

from tenantscope.graph.client import GraphApiError
from tenantscope.graph.document import RawDocument

logger = logging.getLogger(__name__)

E = TypeVar("E")

PERMISSION_MARKERS: tuple[str, ...] = ("premium", "forbidden", "license")


def is_expected_unavailability(
    error: BaseException, markers: Iterable[str] = PERMISSION_MARKERS
) -> bool:
    """
    Check whether an error means the data is unavailable to this tenant.

    Args:
        error: Exception raised by the enrichment fetch
        markers: Case-insensitive substrings that indicate a license or
            permission gap

    Returns:
        True for license/permission gaps, False for anything else
    """
    if isinstance(error, GraphApiError) and error.is_permission_error:
        return True
    text = str(error).lower()
    return any(marker.lower() in text for marker in markers)


def run_enrichment(
    name: str,
    enrich: Callable[[], Any],
    warnings: list[str],
    unavailable_message: str | None = None,
    markers: Iterable[str] = PERMISSION_MARKERS,
) -> bool:
    """
    Run one enrichment pass inside its own failure boundary.

    Args:
        name: What is being enriched, e.g. "users with sign-in activity"
        enrich: Callable performing the fetch and overlay
        warnings: List receiving at most one warning for this pass
        unavailable_message: Warning used when the data is unavailable
            because of a license or permission gap
        markers: Substrings identifying a license or permission gap

    Returns:
        True if the pass completed, False if it failed
    """
    try:
        enrich()
        return True
    except Exception as e:
        if is_expected_unavailability(e, markers):
            logger.warning(f"Enrichment of {name} not available: {e}")
            warnings.append(
                unavailable_message
                or f"Could not enrich {name} - permission or license not available"
            )
        else:
            logger.warning(f"Error enriching {name}: {e}")
            warnings.append(f"Error enriching {name}: {e}")
        return False


def build_lookup(
    documents: Iterable[RawDocument],
    value: Callable[[RawDocument], Any],
    key: str = "id",
) -> dict[str, Any]:
    """
    Index secondary documents by an id field.

    Documents without the key field are skipped; later duplicates win.
    """
    lookup: dict[str, Any] = {}
    for document in documents:
        doc_key = document.get_string(key)
        if doc_key:
            lookup[doc_key] = value(document)
    return lookup


def overlay(
    entities: Iterable[E],
    lookup: dict[str, Any],
    key: Callable[[E], str],
    apply: Callable[[E, Any], None],
) -> int:
    """
    Apply looked-up values onto matching entities.

    Returns:
        Number of entities that matched
    """
    matched = 0
    for entity in entities:
        entity_key = key(entity)
        if entity_key in lookup:
            apply(entity, lookup[entity_key])
            matched += 1
    return matched
