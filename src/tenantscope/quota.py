"""
Usage quota collaborators.

The assessment engine asks the quota before creating a run and records
usage after a run completes. Billing and plan management live elsewhere.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import Counter


class UsageQuota(ABC):
    """Abstract usage quota checked by the assessment engine."""

    @abstractmethod
    def can_run_assessment(self, tenant_id: str) -> bool:
        """
        Check whether a tenant may start another assessment.

        Args:
            tenant_id: Tenant record id
        """
        pass

    @abstractmethod
    def record_assessment_run(self, tenant_id: str) -> None:
        """
        Record one completed assessment for a tenant.

        Args:
            tenant_id: Tenant record id
        """
        pass


class UnlimitedUsageQuota(UsageQuota):
    """Quota that never refuses a run."""

    def can_run_assessment(self, tenant_id: str) -> bool:
        return True

    def record_assessment_run(self, tenant_id: str) -> None:
        pass


class FixedUsageQuota(UsageQuota):
    """
    Quota allowing a fixed number of completed assessments per tenant.

    Example:
        >>> quota = FixedUsageQuota(limit=1)
        >>> quota.can_run_assessment("t1")
        True
        >>> quota.record_assessment_run("t1")
        >>> quota.can_run_assessment("t1")
        False
    """

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError("limit must not be negative")
        self._limit = limit
        self._used: Counter[str] = Counter()
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def used(self, tenant_id: str) -> int:
        """Number of assessments recorded for a tenant."""
        with self._lock:
            return self._used[tenant_id]

    def can_run_assessment(self, tenant_id: str) -> bool:
        with self._lock:
            return self._used[tenant_id] < self._limit

    def record_assessment_run(self, tenant_id: str) -> None:
        with self._lock:
            self._used[tenant_id] += 1
