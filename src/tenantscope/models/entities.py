"""
Persisted entities for tenantscope.

Tenant, AssessmentRun, Finding and RawSnapshot are the records written
through the unit-of-work by the assessment engine. A run owns its
findings and raw snapshots.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from tenantscope.models.assessment import (
    CollectionResult,
    DomainScoreSummary,
    NormalizedFinding,
)
from tenantscope.models.enums import AssessmentDomain, AssessmentStatus, Severity

RAW_SNAPSHOT_COLLECTION_RESULT = "CollectionResult"


def generate_id() -> str:
    """Generate a unique record identifier."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvalidRunTransitionError(Exception):
    """Raised when a run is moved to a state its lifecycle does not allow."""

    def __init__(self, current: AssessmentStatus, target: AssessmentStatus):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition assessment run from {current.value} to {target.value}"
        )


_ALLOWED_TRANSITIONS: dict[AssessmentStatus, set[AssessmentStatus]] = {
    AssessmentStatus.PENDING: {
        AssessmentStatus.RUNNING,
        AssessmentStatus.FAILED,
        AssessmentStatus.CANCELLED,
    },
    AssessmentStatus.RUNNING: {
        AssessmentStatus.COMPLETED,
        AssessmentStatus.FAILED,
        AssessmentStatus.CANCELLED,
    },
    AssessmentStatus.COMPLETED: set(),
    AssessmentStatus.FAILED: set(),
    AssessmentStatus.CANCELLED: set(),
}


@dataclass
class Tenant:
    """
    A Microsoft 365 tenant registered for assessment.

    The client secret is stored encrypted; decryption is delegated to the
    client factory's collaborator.
    """

    id: str
    name: str
    azure_tenant_id: str | None = None
    client_id: str | None = None
    client_secret_encrypted: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting the secret."""
        return {
            "id": self.id,
            "name": self.name,
            "azure_tenant_id": self.azure_tenant_id,
            "client_id": self.client_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AssessmentRun:
    """
    One execution of the assessment pipeline for a tenant.

    Attributes:
        id: Run identifier
        tenant_id: Tenant being assessed
        status: Current lifecycle state
        domains: Domains selected for this run
        initiated_by: Who started the run
        created_at: When the run was created
        started_at: When execution began
        completed_at: When execution reached a terminal state
        overall_score: Mean of available domain scores, None if none available
        domain_scores: Per-domain summary keyed by domain value
        error_message: Reason for a failed run
    """

    tenant_id: str
    domains: list[AssessmentDomain]
    id: str = field(default_factory=generate_id)
    status: AssessmentStatus = AssessmentStatus.PENDING
    initiated_by: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    overall_score: int | None = None
    domain_scores: dict[str, DomainScoreSummary] = field(default_factory=dict)
    error_message: str | None = None

    def transition_to(self, status: AssessmentStatus) -> None:
        """
        Move the run to a new lifecycle state.

        Raises:
            InvalidRunTransitionError: If the transition is not allowed
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidRunTransitionError(self.status, status)
        self.status = status
        if status == AssessmentStatus.RUNNING:
            self.started_at = _utcnow()
        elif status.is_terminal:
            self.completed_at = _utcnow()

    def mark_failed(self, error_message: str) -> None:
        """
        Force the run into FAILED.

        Unlike transition_to(), this is accepted from any state: a terminal
        state set in memory is overridden when persisting it failed.
        """
        self.status = AssessmentStatus.FAILED
        self.completed_at = _utcnow()
        self.error_message = error_message

    @property
    def summary_json(self) -> str:
        """Domain summary serialized as JSON."""
        return json.dumps(
            {key: value.to_dict() for key, value in self.domain_scores.items()}
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "status": self.status.value,
            "domains": [d.value for d in self.domains],
            "initiated_by": self.initiated_by,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "overall_score": self.overall_score,
            "domain_scores": {
                key: value.to_dict() for key, value in self.domain_scores.items()
            },
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssessmentRun:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            status=AssessmentStatus(data.get("status", "pending")),
            domains=[AssessmentDomain(d) for d in data.get("domains", [])],
            initiated_by=data.get("initiated_by"),
            created_at=datetime.fromisoformat(data["created_at"])
            if data.get("created_at")
            else _utcnow(),
            started_at=datetime.fromisoformat(data["started_at"])
            if data.get("started_at")
            else None,
            completed_at=datetime.fromisoformat(data["completed_at"])
            if data.get("completed_at")
            else None,
            overall_score=data.get("overall_score"),
            domain_scores={
                key: DomainScoreSummary.from_dict(value)
                for key, value in data.get("domain_scores", {}).items()
            },
            error_message=data.get("error_message"),
        )


@dataclass(frozen=True)
class Finding:
    """
    Durable record of one normalized finding within a run.

    Created once per module execution and never mutated.
    """

    id: str
    run_id: str
    domain: AssessmentDomain
    check_id: str
    check_name: str
    title: str
    description: str
    severity: Severity
    is_compliant: bool
    category: str
    evidence: str | None = None
    remediation: str | None = None
    references: str | None = None
    affected_resources: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_normalized(
        cls, run_id: str, domain: AssessmentDomain, finding: NormalizedFinding
    ) -> Finding:
        """Convert a normalized finding into a persisted record."""
        return cls(
            id=generate_id(),
            run_id=run_id,
            domain=domain,
            check_id=finding.check_id,
            check_name=finding.check_name,
            title=finding.title,
            description=finding.description,
            severity=finding.severity,
            is_compliant=finding.is_compliant,
            category=finding.category,
            evidence=finding.evidence,
            remediation=finding.remediation,
            references=finding.references,
            affected_resources=", ".join(finding.affected_resources)
            if finding.affected_resources
            else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "run_id": self.run_id,
            "domain": self.domain.value,
            "check_id": self.check_id,
            "check_name": self.check_name,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "is_compliant": self.is_compliant,
            "category": self.category,
            "evidence": self.evidence,
            "remediation": self.remediation,
            "references": self.references,
            "affected_resources": self.affected_resources,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class RawSnapshot:
    """Audit record of one module's raw collection output."""

    id: str
    run_id: str
    domain: AssessmentDomain
    data_type: str
    payload: str
    payload_size: int
    fetched_at: datetime = field(default_factory=_utcnow)
    error_message: str | None = None

    @classmethod
    def from_collection(cls, run_id: str, result: CollectionResult) -> RawSnapshot:
        """Capture a collection result as a raw snapshot."""
        payload = result.to_json()
        return cls(
            id=generate_id(),
            run_id=run_id,
            domain=result.domain,
            data_type=RAW_SNAPSHOT_COLLECTION_RESULT,
            payload=payload,
            payload_size=len(payload.encode("utf-8")),
            error_message=result.error_message,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "run_id": self.run_id,
            "domain": self.domain.value,
            "data_type": self.data_type,
            "payload": self.payload,
            "payload_size": self.payload_size,
            "fetched_at": self.fetched_at.isoformat(),
            "error_message": self.error_message,
        }
