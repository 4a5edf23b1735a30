"""
Abstract persistence interfaces for tenantscope.

Engines write through a unit-of-work that groups the repositories for
tenants, assessment runs, findings, raw snapshots, inventory snapshots and
inventory items. Writes are staged and only become durable on commit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Iterable, TypeVar

T = TypeVar("T")


class StorageError(Exception):
    """Raised when a persistence operation cannot be completed."""

    pass


class Repository(ABC, Generic[T]):
    """
    Abstract repository for one entity type.

    Reads observe staged writes of the same unit-of-work.
    """

    @abstractmethod
    def add(self, entity: T) -> None:
        """
        Stage a new entity.

        Args:
            entity: Entity to add
        """
        pass

    def add_many(self, entities: Iterable[T]) -> None:
        """Stage several new entities."""
        for entity in entities:
            self.add(entity)

    @abstractmethod
    def update(self, entity: T) -> None:
        """
        Stage changes to an existing entity.

        Raises:
            StorageError: If the entity does not exist
        """
        pass

    @abstractmethod
    def get(self, key: Any) -> T | None:
        """
        Get an entity by key.

        Returns:
            The entity, or None if it does not exist
        """
        pass

    @abstractmethod
    def find(self, predicate: Callable[[T], bool] | None = None) -> list[T]:
        """
        List entities matching a predicate, in insertion order.

        Args:
            predicate: Filter function, or None for every entity
        """
        pass


class UnitOfWork(ABC):
    """
    Abstract unit-of-work grouping every repository.

    ``save_changes()`` makes staged writes durable unless a transaction is
    open, in which case they become durable on ``commit()``. ``rollback()``
    discards everything staged since the last durable point.
    """

    tenants: Repository[Any]
    assessment_runs: Repository[Any]
    findings: Repository[Any]
    raw_snapshots: Repository[Any]
    inventory_snapshots: Repository[Any]
    inventory: Repository[Any]

    @abstractmethod
    def save_changes(self) -> None:
        """Flush staged writes."""
        pass

    @abstractmethod
    def begin_transaction(self) -> None:
        """
        Open a transaction.

        Raises:
            StorageError: If a transaction is already open
        """
        pass

    @abstractmethod
    def commit(self) -> None:
        """Flush staged writes and close any open transaction."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard staged writes and close any open transaction."""
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Check whether a transaction is open."""
        pass
