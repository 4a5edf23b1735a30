"""
Persistence layer for tenantscope.

Engines depend on the UnitOfWork interface only. InMemoryUnitOfWork is the
reference implementation.
"""

from tenantscope.storage.base import Repository, StorageError, UnitOfWork
from tenantscope.storage.memory import InMemoryRepository, InMemoryUnitOfWork

__all__ = [
    "Repository",
    "StorageError",
    "UnitOfWork",
    "InMemoryRepository",
    "InMemoryUnitOfWork",
]
