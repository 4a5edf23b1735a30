"""
Assessment pipeline data models.

This module defines the transient objects that flow through a module's
collect, normalize and score phases, plus the per-domain summary that is
stored on an assessment run.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from tenantscope.models.enums import AssessmentDomain, Severity

MAX_DOMAIN_SCORE = 100
UNGRADED = "N/A"


@dataclass
class CollectionResult:
    """
    Output of an assessment module's collect phase.

    Attributes:
        domain: Domain the data was collected for
        success: Whether the collection produced usable data
        error_message: Reason the collection failed, if it did
        raw_data: Parsed response documents keyed by data point name
        collected_at: When the collection finished
        warnings: Human-readable problems encountered along the way
        unavailable_endpoints: Data points that could not be fetched
    """

    domain: AssessmentDomain
    success: bool = True
    error_message: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict)
    collected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    warnings: list[str] = field(default_factory=list)
    unavailable_endpoints: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain.value,
            "success": self.success,
            "error_message": self.error_message,
            "raw_data": self.raw_data,
            "collected_at": self.collected_at.isoformat(),
            "warnings": list(self.warnings),
            "unavailable_endpoints": list(self.unavailable_endpoints),
        }

    def to_json(self) -> str:
        """Serialize to a JSON payload suitable for a raw snapshot."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class NormalizedFinding:
    """
    One compliance check outcome produced by a module's normalize phase.

    A compliant finding never contributes to score deductions.
    """

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
    affected_resources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
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
            "affected_resources": list(self.affected_resources),
        }


@dataclass
class NormalizedFindings:
    """Normalized output of one module, fed to the score phase."""

    domain: AssessmentDomain
    findings: list[NormalizedFinding] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    summary: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[NormalizedFinding]:
        """Non-compliant findings."""
        return [f for f in self.findings if not f.is_compliant]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain.value,
            "findings": [f.to_dict() for f in self.findings],
            "metrics": self.metrics,
            "summary": list(self.summary),
        }


@dataclass(frozen=True)
class DomainScore:
    """
    Score for one assessment domain.

    Attributes:
        domain: Scored domain
        score: Score from 0 to 100
        max_score: Always 100
        grade: Letter grade derived from the score
        critical_count: Failed critical checks
        high_count: Failed high checks
        medium_count: Failed medium checks
        low_count: Failed low checks
        passed_checks: Compliant checks
        failed_checks: Non-compliant checks
        total_checks: All checks, including informational ones
        top_recommendations: Remediation text for the most severe failures
    """

    domain: AssessmentDomain
    score: int
    grade: str
    max_score: int = MAX_DOMAIN_SCORE
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    total_checks: int = 0
    top_recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain.value,
            "score": self.score,
            "max_score": self.max_score,
            "grade": self.grade,
            "critical_count": self.critical_count,
            "high_count": self.high_count,
            "medium_count": self.medium_count,
            "low_count": self.low_count,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "total_checks": self.total_checks,
            "top_recommendations": list(self.top_recommendations),
        }


@dataclass
class DomainScoreSummary:
    """
    Per-domain entry stored in an assessment run's summary.

    Domains without usable data are kept with ``is_available`` false and
    an explanation, so every assessed domain is accounted for.
    """

    domain: AssessmentDomain
    display_name: str
    score: int = 0
    grade: str = UNGRADED
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    total_checks: int = 0
    is_available: bool = True
    unavailable_reason: str | None = None

    @classmethod
    def from_score(
        cls,
        score: DomainScore,
        display_name: str,
        is_available: bool = True,
        unavailable_reason: str | None = None,
    ) -> DomainScoreSummary:
        """Build a summary entry from a computed domain score."""
        return cls(
            domain=score.domain,
            display_name=display_name,
            score=score.score,
            grade=score.grade,
            critical_count=score.critical_count,
            high_count=score.high_count,
            medium_count=score.medium_count,
            low_count=score.low_count,
            passed_checks=score.passed_checks,
            failed_checks=score.failed_checks,
            total_checks=score.total_checks,
            is_available=is_available,
            unavailable_reason=unavailable_reason,
        )

    @classmethod
    def unavailable(
        cls, domain: AssessmentDomain, display_name: str, reason: str | None
    ) -> DomainScoreSummary:
        """Build a zero-score entry for a domain with no usable data."""
        return cls(
            domain=domain,
            display_name=display_name,
            is_available=False,
            unavailable_reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain.value,
            "display_name": self.display_name,
            "score": self.score,
            "grade": self.grade,
            "critical_count": self.critical_count,
            "high_count": self.high_count,
            "medium_count": self.medium_count,
            "low_count": self.low_count,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "total_checks": self.total_checks,
            "is_available": self.is_available,
            "unavailable_reason": self.unavailable_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainScoreSummary:
        """Create from dictionary."""
        return cls(
            domain=AssessmentDomain(data["domain"]),
            display_name=data.get("display_name", ""),
            score=data.get("score", 0),
            grade=data.get("grade", UNGRADED),
            critical_count=data.get("critical_count", 0),
            high_count=data.get("high_count", 0),
            medium_count=data.get("medium_count", 0),
            low_count=data.get("low_count", 0),
            passed_checks=data.get("passed_checks", 0),
            failed_checks=data.get("failed_checks", 0),
            total_checks=data.get("total_checks", 0),
            is_available=data.get("is_available", True),
            unavailable_reason=data.get("unavailable_reason"),
        )
