"""
Inventory collection for tenantscope.

Inventory modules enumerate tenant objects per domain and persist them as
snapshots; the InventoryEngine runs them and computes deltas between
successive snapshots of a domain.

Modules:
    - TenantBaselineInventoryModule: Organization profile, domains and licenses
    - IdentityAccessInventoryModule: Users, groups, roles, apps and CA policies
"""

from __future__ import annotations

from typing import Iterable

from tenantscope.collection.enrichment import PERMISSION_MARKERS
from tenantscope.inventory.base import BaseInventoryModule
from tenantscope.inventory.engine import CollectionNotFoundError, InventoryEngine
from tenantscope.inventory.identity_access import IdentityAccessInventoryModule
from tenantscope.inventory.tenant_baseline import TenantBaselineInventoryModule
from tenantscope.models import InventoryDomain

# Inventory module classes by domain, in collection order
INVENTORY_MODULE_REGISTRY: dict[InventoryDomain, type[BaseInventoryModule]] = {
    InventoryDomain.TENANT_BASELINE: TenantBaselineInventoryModule,
    InventoryDomain.IDENTITY_ACCESS: IdentityAccessInventoryModule,
}


def get_default_inventory_modules(
    domains: list[InventoryDomain] | None = None,
    permission_markers: Iterable[str] = PERMISSION_MARKERS,
) -> list[BaseInventoryModule]:
    """
    Instantiate the built-in inventory modules.

    Args:
        domains: Restrict to these domains; every registered domain if None
        permission_markers: Error substrings treated as a license or
            permission gap during enrichment

    Returns:
        Module instances in collection order
    """
    return [
        module_class(permission_markers)
        for domain, module_class in INVENTORY_MODULE_REGISTRY.items()
        if domains is None or domain in domains
    ]


__all__ = [
    "BaseInventoryModule",
    "CollectionNotFoundError",
    "IdentityAccessInventoryModule",
    "InventoryEngine",
    "TenantBaselineInventoryModule",
    "INVENTORY_MODULE_REGISTRY",
    "get_default_inventory_modules",
]
