"""
Domain scoring and grading.

Scores start at 100 and lose a severity-weighted deduction for every
non-compliant finding. Each severity's total deduction is capped so that
a single noisy check category cannot zero a domain on its own.
"""

from __future__ import annotations

import math
from typing import Iterable

from tenantscope.models import (
    MAX_DOMAIN_SCORE,
    DomainScore,
    DomainScoreSummary,
    NormalizedFindings,
    Severity,
)

SEVERITY_WEIGHTS: dict[Severity, int] = {
    Severity.CRITICAL: 15,
    Severity.HIGH: 8,
    Severity.MEDIUM: 4,
    Severity.LOW: 1,
}

MAX_SEVERITY_DEDUCTION = 40

GRADE_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)
FAILING_GRADE = "F"

DEFAULT_MAX_RECOMMENDATIONS = 5


def calculate_grade(score: int) -> str:
    """
    Map a 0-100 score to a letter grade.

    >>> calculate_grade(90), calculate_grade(89), calculate_grade(59)
    ('A', 'B', 'F')
    """
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return FAILING_GRADE


def calculate_overall_score(scores: Iterable[int]) -> int | None:
    """
    Average domain scores into a tenant-wide score.

    Args:
        scores: Scores of the domains that had usable data

    Returns:
        Arithmetic mean rounded half up, or None if there are no scores
    """
    values = list(scores)
    if not values:
        return None
    return int(math.floor(sum(values) / len(values) + 0.5))


class ScoringService:
    """
    Shared scoring used by every assessment module.

    Stateless apart from its configuration, so a single instance can be
    shared by all modules and runs.
    """

    def __init__(self, max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS):
        """
        Initialize the scoring service.

        Args:
            max_recommendations: Number of most severe failures whose
                remediation is offered as a top recommendation
        """
        self._max_recommendations = max_recommendations

    def calculate_domain_score(self, findings: NormalizedFindings) -> DomainScore:
        """
        Score one domain's normalized findings.

        A domain without any checks scores 100. Only non-compliant findings
        are counted per severity and deducted.

        Args:
            findings: Normalized output of a module

        Returns:
            DomainScore for the domain
        """
        total_checks = len(findings.findings)
        if total_checks == 0:
            return DomainScore(
                domain=findings.domain,
                score=MAX_DOMAIN_SCORE,
                grade=calculate_grade(MAX_DOMAIN_SCORE),
            )

        failed = findings.failed
        passed_checks = total_checks - len(failed)

        counts = {severity: 0 for severity in SEVERITY_WEIGHTS}
        for finding in failed:
            if finding.severity in counts:
                counts[finding.severity] += 1

        deduction = sum(
            min(counts[severity] * weight, MAX_SEVERITY_DEDUCTION)
            for severity, weight in SEVERITY_WEIGHTS.items()
        )
        score = max(0, int(MAX_DOMAIN_SCORE - deduction))

        return DomainScore(
            domain=findings.domain,
            score=score,
            grade=calculate_grade(score),
            critical_count=counts[Severity.CRITICAL],
            high_count=counts[Severity.HIGH],
            medium_count=counts[Severity.MEDIUM],
            low_count=counts[Severity.LOW],
            passed_checks=passed_checks,
            failed_checks=len(failed),
            total_checks=total_checks,
            top_recommendations=self._top_recommendations(findings),
        )

    def _top_recommendations(self, findings: NormalizedFindings) -> tuple[str, ...]:
        """Remediation text of the most severe failures that have one."""
        most_severe = sorted(findings.failed, key=lambda f: f.severity.rank)
        return tuple(
            f.remediation
            for f in most_severe[: self._max_recommendations]
            if f.remediation
        )

    def calculate_overall_score(self, scores: Iterable[int]) -> int | None:
        """Average domain scores; None when no domain is available."""
        return calculate_overall_score(scores)

    def overall_from_summaries(
        self, summaries: Iterable[DomainScoreSummary]
    ) -> int | None:
        """Average the scores of available domains only."""
        return calculate_overall_score(s.score for s in summaries if s.is_available)

    def calculate_grade(self, score: int) -> str:
        """Map a score to a letter grade."""
        return calculate_grade(score)

    def summarize(self, summaries: Iterable[DomainScoreSummary]) -> dict[str, int]:
        """
        Count available and unavailable domains.

        Returns:
            Dictionary with ``available`` and ``unavailable`` counts
        """
        entries = list(summaries)
        available = sum(1 for s in entries if s.is_available)
        return {"available": available, "unavailable": len(entries) - available}
