"""
Base inventory module for tenantscope.

Inventory modules enumerate the objects of one inventory domain, persist
them through the unit-of-work and report what was persisted. Unlike
assessment modules they produce no findings.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Iterable, TypeVar

from tenantscope.cancellation import CancellationToken
from tenantscope.collection.enrichment import PERMISSION_MARKERS
from tenantscope.collection.pagination import collect_pages
from tenantscope.graph.client import GraphClient
from tenantscope.graph.document import RawDocument
from tenantscope.models import InventoryCollectionResult, InventoryDomain, InventoryItem
from tenantscope.storage.base import UnitOfWork

I = TypeVar("I", bound=InventoryItem)


class BaseInventoryModule(ABC):
    """
    Abstract base class for inventory modules.

    Attributes:
        domain: Inventory domain this module covers
        display_name: Human-readable module name
        description: What the module inventories
        required_permissions: Graph application permissions the module reads with
    """

    domain: InventoryDomain
    display_name: str = ""
    description: str = ""
    required_permissions: tuple[str, ...] = ()

    def __init__(self, permission_markers: Iterable[str] = PERMISSION_MARKERS) -> None:
        self._logger = logging.getLogger(type(self).__module__)
        self.permission_markers = tuple(permission_markers)

    @abstractmethod
    def collect(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        unit_of_work: UnitOfWork,
        cancel_token: CancellationToken | None = None,
    ) -> InventoryCollectionResult:
        """
        Collect and persist the domain's inventory.

        Entities are staged with ``unit_of_work.inventory``; the engine
        decides when they are committed.

        Args:
            client: Tenant-scoped Graph client
            tenant_id: Tenant record id written onto every entity
            snapshot_id: Snapshot the entities belong to
            unit_of_work: Persistence for the collected entities
            cancel_token: Optional cooperative cancellation token

        Returns:
            InventoryCollectionResult describing what was persisted
        """
        pass

    def validate_permissions(self, client: GraphClient) -> bool:
        """
        Check that every required permission is granted.

        Returns:
            False at the first missing permission, True otherwise
        """
        for permission in self.required_permissions:
            if not client.has_permission(permission):
                self._logger.warning(f"Missing required permission: {permission}")
                return False
        return True

    def success(
        self,
        item_count: int,
        started: float,
        item_breakdown: dict[str, int] | None = None,
        warnings: list[str] | None = None,
        unavailable_endpoints: list[str] | None = None,
    ) -> InventoryCollectionResult:
        """
        Build a result for a completed collection.

        Args:
            item_count: Total items persisted
            started: ``time.time()`` at the start of collection
            item_breakdown: Item counts per entity type
            warnings: Recoverable problems encountered
            unavailable_endpoints: Endpoints that could not be read; a
                partial-success result is built when any are given
        """
        duration = time.time() - started
        if unavailable_endpoints:
            return InventoryCollectionResult.partial_success(
                self.domain,
                item_count,
                duration,
                unavailable_endpoints,
                item_breakdown=item_breakdown,
                warnings=warnings,
            )
        return InventoryCollectionResult.succeeded(
            self.domain,
            item_count,
            duration,
            item_breakdown=item_breakdown,
            warnings=warnings,
        )

    def failure(
        self, error: str, started: float, warnings: list[str] | None = None
    ) -> InventoryCollectionResult:
        """Build a result for a failed collection."""
        return InventoryCollectionResult.failed(
            self.domain, error, time.time() - started, warnings=warnings
        )

    def collect_entities(
        self,
        client: GraphClient,
        endpoint: str,
        convert: Callable[[RawDocument], I],
        warnings: list[str],
        cancel_token: CancellationToken | None = None,
        label: str | None = None,
    ) -> list[I]:
        """Read every page of a collection endpoint into entities."""
        return collect_pages(
            client,
            endpoint,
            convert=convert,
            warnings=warnings,
            cancel_token=cancel_token,
            label=label,
        ).items
