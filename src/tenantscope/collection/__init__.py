"""
Collection protocols shared by assessment and inventory modules.
"""

from tenantscope.collection.enrichment import (
    PERMISSION_MARKERS,
    build_lookup,
    is_expected_unavailability,
    overlay,
    run_enrichment,
)
from tenantscope.collection.pagination import (
    PageResult,
    collect_all_pages,
    collect_pages,
    endpoint_label,
)

__all__ = [
    "PERMISSION_MARKERS",
    "build_lookup",
    "is_expected_unavailability",
    "overlay",
    "run_enrichment",
    "PageResult",
    "collect_all_pages",
    "collect_pages",
    "endpoint_label",
]
