"""
In-memory unit-of-work.

Reference persistence used by the CLI and tests. Entities are held in
dictionaries keyed per repository; nothing survives the process.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, TypeVar

from tenantscope.storage.base import Repository, StorageError, UnitOfWork

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _by_id(entity: Any) -> Any:
    return entity.id


def _by_snapshot_item(entity: Any) -> Any:
    return (entity.snapshot_id, entity.item_key)


class InMemoryRepository(Repository[T], Generic[T]):
    """
    Dictionary-backed repository with a staging layer.

    Args:
        key: Function deriving an entity's key (defaults to ``entity.id``)
    """

    def __init__(self, key: Callable[[T], Any] = _by_id):
        self._key = key
        self._durable: dict[Any, T] = {}
        self._staged: dict[Any, T] = {}

    def add(self, entity: T) -> None:
        key = self._key(entity)
        if key in self._staged or key in self._durable:
            raise StorageError(f"Duplicate key: {key}")
        self._staged[key] = entity

    def update(self, entity: T) -> None:
        key = self._key(entity)
        if key not in self._staged and key not in self._durable:
            raise StorageError(f"Entity not found: {key}")
        self._staged[key] = entity

    def get(self, key: Any) -> T | None:
        if key in self._staged:
            return self._staged[key]
        return self._durable.get(key)

    def find(self, predicate: Callable[[T], bool] | None = None) -> list[T]:
        merged = dict(self._durable)
        merged.update(self._staged)
        entities = list(merged.values())
        if predicate is None:
            return entities
        return [e for e in entities if predicate(e)]

    @property
    def pending_count(self) -> int:
        """Number of staged writes."""
        return len(self._staged)

    def _flush(self) -> None:
        self._durable.update(self._staged)
        self._staged.clear()

    def _discard(self) -> None:
        self._staged.clear()


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit-of-work over in-memory repositories.

    Example:
        >>> uow = InMemoryUnitOfWork()
        >>> uow.begin_transaction()
        >>> uow.rollback()
        >>> uow.in_transaction
        False
    """

    def __init__(self) -> None:
        self.tenants = InMemoryRepository()
        self.assessment_runs = InMemoryRepository()
        self.findings = InMemoryRepository()
        self.raw_snapshots = InMemoryRepository()
        self.inventory_snapshots = InMemoryRepository()
        self.inventory = InMemoryRepository(key=_by_snapshot_item)
        self._in_transaction = False
        self._lock = threading.RLock()

    @property
    def _repositories(self) -> list[InMemoryRepository[Any]]:
        return [
            self.tenants,
            self.assessment_runs,
            self.findings,
            self.raw_snapshots,
            self.inventory_snapshots,
            self.inventory,
        ]

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def save_changes(self) -> None:
        with self._lock:
            if self._in_transaction:
                return
            for repository in self._repositories:
                repository._flush()

    def begin_transaction(self) -> None:
        with self._lock:
            if self._in_transaction:
                raise StorageError("A transaction is already open")
            self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            for repository in self._repositories:
                repository._flush()
            self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            discarded = sum(r.pending_count for r in self._repositories)
            for repository in self._repositories:
                repository._discard()
            self._in_transaction = False
        logger.debug(f"Rolled back {discarded} staged writes")
