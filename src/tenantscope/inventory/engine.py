"""
Inventory collection engine.

Collects the selected inventory domains for a tenant one after another.
Each domain gets its own snapshot and its own transaction, so a failure
in one domain never discards what another domain persisted.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable

from tenantscope.cancellation import CancellationToken, is_cancelled
from tenantscope.engine.assessment import EngineError, TenantNotFoundError
from tenantscope.graph.client import GraphClient
from tenantscope.graph.factory import GraphClientFactory
from tenantscope.inventory.base import BaseInventoryModule
from tenantscope.models import (
    InventoryCollectionResult,
    InventoryDomain,
    InventoryProgress,
    InventorySnapshot,
    InventoryStatus,
    generate_id,
)
from tenantscope.progress import ProgressEvent, ProgressReporter, QuietProgressReporter
from tenantscope.storage.base import UnitOfWork

logger = logging.getLogger(__name__)

_FINISHED_STATUSES = (InventoryStatus.COMPLETED, InventoryStatus.PARTIALLY_COMPLETED)


def _is_finished(snapshot: InventorySnapshot) -> bool:
    return snapshot.status in _FINISHED_STATUSES and not snapshot.error_message


class CollectionNotFoundError(EngineError):
    """Raised when an inventory collection does not exist."""

    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Inventory collection not found: {collection_id}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryEngine:
    """
    Orchestrates inventory collections.

    A collection groups one InventorySnapshot per requested domain under a
    shared collection id.

    Example:
        >>> engine = InventoryEngine(uow, GraphClientFactory(), get_default_inventory_modules())
        >>> collection_id = engine.start_collection(tenant.id)
        >>> progress = engine.execute_collection(collection_id)
        >>> progress.status
        <InventoryStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        client_factory: GraphClientFactory,
        modules: Iterable[BaseInventoryModule],
        progress_reporter: ProgressReporter | None = None,
    ):
        self._uow = unit_of_work
        self._client_factory = client_factory
        self._modules = {m.domain: m for m in modules}
        self._progress = progress_reporter or QuietProgressReporter()
        self._active: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    @property
    def registered_domains(self) -> list[InventoryDomain]:
        """Domains with a registered module, in registration order."""
        return list(self._modules)

    def start_collection(
        self,
        tenant_id: str,
        domains: Iterable[InventoryDomain] | None = None,
        initiated_by: str | None = None,
    ) -> str:
        """
        Create a pending collection with one snapshot per domain.

        Args:
            tenant_id: Tenant to inventory
            domains: Domains to collect, or None for every registered domain
            initiated_by: Who requested the collection

        Returns:
            The new collection id

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        tenant = self._uow.tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)

        selected = list(domains) if domains is not None else self.registered_domains
        collection_id = generate_id()

        self._uow.inventory_snapshots.add_many(
            InventorySnapshot(
                tenant_id=tenant_id,
                domain=domain,
                collection_id=collection_id,
                initiated_by=initiated_by,
            )
            for domain in selected
        )
        self._uow.commit()

        logger.info(
            f"Created inventory collection {collection_id} for tenant {tenant.name} "
            f"({len(selected)} domains)"
        )
        return collection_id

    def execute_collection(
        self, collection_id: str, cancel_token: CancellationToken | None = None
    ) -> InventoryProgress:
        """
        Execute a pending collection.

        Args:
            collection_id: Collection created by start_collection()
            cancel_token: Optional cooperative cancellation token, checked
                before each domain. A token is created when omitted so
                cancel_collection() can stop the run.

        Returns:
            Final progress of the collection

        Raises:
            CollectionNotFoundError: If the collection has no snapshots
            TenantNotFoundError: If the collection's tenant no longer exists
        """
        snapshots = self._snapshots(collection_id)
        tenant = self._uow.tenants.get(snapshots[0].tenant_id)
        if tenant is None:
            raise TenantNotFoundError(snapshots[0].tenant_id)

        token = cancel_token or CancellationToken()
        with self._lock:
            self._active[collection_id] = token

        try:
            try:
                client = self._client_factory.create_client(tenant)
            except Exception as e:
                logger.error(f"Could not create Graph client for tenant {tenant.id}: {e}")
                self._fail_all(snapshots, f"Failed to create Graph client: {e}")
                return self.get_progress(collection_id)

            total = len(snapshots)
            for index, snapshot in enumerate(snapshots):
                if is_cancelled(token):
                    logger.info(f"Inventory collection {collection_id} cancelled")
                    self._cancel_remaining(snapshots)
                    break

                self._report(
                    collection_id,
                    index * 100 // total,
                    f"Collecting {snapshot.domain.display_name}",
                    snapshot.domain.value,
                )
                self._collect_domain(snapshot, client, token)
        finally:
            with self._lock:
                self._active.pop(collection_id, None)

        progress = self.get_progress(collection_id)
        self._report(collection_id, 100, "Inventory collection completed", None)
        logger.info(
            f"Inventory collection {collection_id} finished with status "
            f"{progress.status.value}: {progress.total_items} items"
        )
        return progress

    def get_progress(self, collection_id: str) -> InventoryProgress:
        """
        Derive the progress of a collection from its snapshots.

        Raises:
            CollectionNotFoundError: If the collection has no snapshots
        """
        snapshots = self._snapshots(collection_id)
        progress = InventoryProgress(collection_id=collection_id)

        for snapshot in snapshots:
            if _is_finished(snapshot):
                progress.completed_domains.append(snapshot.domain)
            elif snapshot.status in (InventoryStatus.FAILED, InventoryStatus.PARTIALLY_COMPLETED):
                progress.failed_domains.append(snapshot.domain)
            elif snapshot.status == InventoryStatus.PENDING:
                progress.pending_domains.append(snapshot.domain)
            elif snapshot.status == InventoryStatus.RUNNING:
                progress.current_domain = snapshot.domain
            if snapshot.error_message:
                progress.errors.append(f"{snapshot.domain.value}: {snapshot.error_message}")
            progress.total_items += snapshot.item_count

        progress.percentage = len(progress.completed_domains) / len(snapshots) * 100
        progress.started_at = min(s.created_at for s in snapshots)
        progress.status = self._overall_status(snapshots, progress)
        if progress.status not in (InventoryStatus.PENDING, InventoryStatus.RUNNING):
            progress.completed_at = max(
                (s.collected_at for s in snapshots if s.collected_at), default=None
            )
        return progress

    def cancel_collection(self, collection_id: str) -> bool:
        """
        Request cancellation of a running collection.

        Returns:
            True if the collection was running, False otherwise
        """
        with self._lock:
            token = self._active.get(collection_id)
        if token is None:
            return False
        token.cancel()
        logger.info(f"Cancellation requested for inventory collection {collection_id}")
        return True

    def get_snapshots(self, collection_id: str) -> list[InventorySnapshot]:
        """List the snapshots of a collection."""
        return self._uow.inventory_snapshots.find(lambda s: s.collection_id == collection_id)

    def _snapshots(self, collection_id: str) -> list[InventorySnapshot]:
        snapshots = self.get_snapshots(collection_id)
        if not snapshots:
            raise CollectionNotFoundError(collection_id)
        return snapshots

    def _collect_domain(
        self,
        snapshot: InventorySnapshot,
        client: GraphClient,
        token: CancellationToken,
    ) -> None:
        """Run one domain's module inside its failure boundary."""
        module = self._modules.get(snapshot.domain)
        if module is None:
            logger.warning(f"No inventory module registered for {snapshot.domain.value}")
            snapshot.status = InventoryStatus.FAILED
            snapshot.error_message = "Module not found"
            self._uow.inventory_snapshots.update(snapshot)
            self._uow.save_changes()
            return

        snapshot.status = InventoryStatus.RUNNING
        self._uow.inventory_snapshots.update(snapshot)
        self._uow.save_changes()

        self._uow.begin_transaction()
        try:
            result = module.collect(
                client, snapshot.tenant_id, snapshot.id, self._uow, token
            )
            self._apply_result(snapshot, result)
            if _is_finished(snapshot):
                self._apply_deltas(snapshot)
            self._uow.inventory_snapshots.update(snapshot)
            self._uow.commit()
        except Exception as e:
            logger.exception(f"Inventory module {module.display_name} failed: {e}")
            self._uow.rollback()
            snapshot.status = InventoryStatus.FAILED
            snapshot.error_message = str(e)
            snapshot.collected_at = _utcnow()
            self._uow.inventory_snapshots.update(snapshot)
            self._uow.save_changes()

    def _apply_result(
        self, snapshot: InventorySnapshot, result: InventoryCollectionResult
    ) -> None:
        snapshot.status = (
            InventoryStatus.COMPLETED if result.success else InventoryStatus.PARTIALLY_COMPLETED
        )
        snapshot.error_message = result.error_message
        snapshot.item_count = result.item_count
        snapshot.duration_seconds = result.duration_seconds
        snapshot.collected_at = result.collected_at
        snapshot.warnings = list(result.warnings)
        snapshot.item_breakdown = dict(result.item_breakdown)
        if result.unavailable_endpoints:
            snapshot.warnings.append(
                f"Unavailable endpoints: {', '.join(result.unavailable_endpoints)}"
            )

    def _apply_deltas(self, snapshot: InventorySnapshot) -> None:
        """Compare the snapshot's items with the previous finished snapshot."""
        previous = self._previous_snapshot(snapshot)
        if previous is None:
            return

        current = self._fingerprints(snapshot.id)
        before = self._fingerprints(previous.id)
        snapshot.items_added = len(current.keys() - before.keys())
        snapshot.items_removed = len(before.keys() - current.keys())
        snapshot.items_modified = sum(
            1 for key in current.keys() & before.keys() if current[key] != before[key]
        )
        logger.debug(
            f"{snapshot.domain.value} delta vs {previous.id}: +{snapshot.items_added} "
            f"-{snapshot.items_removed} ~{snapshot.items_modified}"
        )

    def _previous_snapshot(self, snapshot: InventorySnapshot) -> InventorySnapshot | None:
        candidates = self._uow.inventory_snapshots.find(
            lambda s: s.tenant_id == snapshot.tenant_id
            and s.domain == snapshot.domain
            and s.id != snapshot.id
            and _is_finished(s)
            and s.collected_at is not None
        )
        if not candidates:
            return None
        return max(candidates, key=lambda s: s.collected_at)

    def _fingerprints(self, snapshot_id: str) -> dict[str, str]:
        return {
            item.item_key: item.fingerprint()
            for item in self._uow.inventory.find(lambda i: i.snapshot_id == snapshot_id)
        }

    def _fail_all(self, snapshots: list[InventorySnapshot], error: str) -> None:
        for snapshot in snapshots:
            snapshot.status = InventoryStatus.FAILED
            snapshot.error_message = error
            self._uow.inventory_snapshots.update(snapshot)
        self._uow.save_changes()

    def _cancel_remaining(self, snapshots: list[InventorySnapshot]) -> None:
        for snapshot in snapshots:
            if snapshot.status in (InventoryStatus.PENDING, InventoryStatus.RUNNING):
                snapshot.status = InventoryStatus.CANCELLED
                self._uow.inventory_snapshots.update(snapshot)
        self._uow.save_changes()

    @staticmethod
    def _overall_status(
        snapshots: list[InventorySnapshot], progress: InventoryProgress
    ) -> InventoryStatus:
        statuses = {s.status for s in snapshots}
        if InventoryStatus.RUNNING in statuses:
            return InventoryStatus.RUNNING
        if statuses == {InventoryStatus.PENDING}:
            return InventoryStatus.PENDING
        if InventoryStatus.CANCELLED in statuses:
            return InventoryStatus.CANCELLED
        if progress.failed_domains:
            if not progress.completed_domains:
                return InventoryStatus.FAILED
            return InventoryStatus.PARTIALLY_COMPLETED
        return InventoryStatus.COMPLETED

    def _report(
        self,
        collection_id: str,
        percentage: int,
        operation: str,
        current_domain: str | None,
    ) -> None:
        self._progress.report(
            ProgressEvent(
                run_id=collection_id,
                percentage=percentage,
                operation=operation,
                current_domain=current_domain,
            )
        )
