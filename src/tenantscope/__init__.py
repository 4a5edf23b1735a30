"""
tenantscope - Microsoft 365 tenant security posture assessment and inventory

Reads a tenant through Microsoft Graph with an app registration, scores
each security domain from 0 to 100 and records the failed checks with
remediation guidance. A separate inventory pipeline snapshots tenant
objects and reports what changed since the previous snapshot.

Key Features:
- Read-only: only Graph GET requests are ever issued
- Per-domain failure isolation: one unavailable API never sinks a run
- License-aware: missing premium features become warnings, not errors

Quick Start:
    >>> from tenantscope.engine import AssessmentEngine
    >>> from tenantscope.graph import GraphClientFactory
    >>> from tenantscope.modules import ModuleRegistry
    >>> from tenantscope.storage import InMemoryUnitOfWork
    >>>
    >>> engine = AssessmentEngine(uow, GraphClientFactory(), ModuleRegistry.default())
    >>> run = engine.execute_assessment(engine.start_assessment(tenant.id))
    >>> print(f"Overall score: {run.overall_score}")
"""

from __future__ import annotations

__version__ = "0.1.0"

from tenantscope.models import (
    AssessmentDomain,
    AssessmentRun,
    AssessmentStatus,
    Finding,
    InventoryDomain,
    InventoryStatus,
    Severity,
    Tenant,
)

__all__ = [
    "__version__",
    "AssessmentDomain",
    "AssessmentRun",
    "AssessmentStatus",
    "Finding",
    "InventoryDomain",
    "InventoryStatus",
    "Severity",
    "Tenant",
]
