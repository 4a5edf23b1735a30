"""
Unit tests for domain scoring and grading.
"""

from __future__ import annotations

import pytest

from tenantscope.engine import ScoringService, calculate_grade, calculate_overall_score
from tenantscope.models import (
    AssessmentDomain,
    DomainScoreSummary,
    NormalizedFinding,
    NormalizedFindings,
    Severity,
)


def _finding(
    severity: Severity,
    compliant: bool = False,
    check_id: str = "CHK-001",
    remediation: str | None = None,
) -> NormalizedFinding:
    return NormalizedFinding(
        check_id=check_id,
        check_name="Check",
        title="Check title",
        description="Check description",
        severity=severity,
        is_compliant=compliant,
        category="Test",
        remediation=remediation,
    )


def _findings(*items: NormalizedFinding) -> NormalizedFindings:
    return NormalizedFindings(domain=AssessmentDomain.IDENTITY_AND_ACCESS, findings=list(items))


# ============================================================================
# Grade Tests
# ============================================================================


class TestCalculateGrade:
    """Tests for letter grade boundaries."""

    @pytest.mark.parametrize(
        "score,grade",
        [
            (100, "A"),
            (90, "A"),
            (89, "B"),
            (80, "B"),
            (79, "C"),
            (70, "C"),
            (69, "D"),
            (60, "D"),
            (59, "F"),
            (0, "F"),
        ],
    )
    def test_boundaries(self, score, grade) -> None:
        """Test each grade threshold is inclusive."""
        assert calculate_grade(score) == grade


class TestCalculateOverallScore:
    """Tests for the tenant-wide score."""

    @pytest.mark.parametrize(
        "scores,expected",
        [
            ([80, 91], 86),
            ([1, 2], 2),
            ([100], 100),
            ([0, 0, 1], 0),
        ],
    )
    def test_mean_rounded_half_up(self, scores, expected) -> None:
        """Test the plain mean rounds halves upward."""
        assert calculate_overall_score(scores) == expected

    def test_no_scores(self) -> None:
        """Test there is no overall score without available domains."""
        assert calculate_overall_score([]) is None


# ============================================================================
# ScoringService Tests
# ============================================================================


class TestCalculateDomainScore:
    """Tests for ScoringService.calculate_domain_score."""

    def test_no_checks_scores_full(self) -> None:
        """Test a domain without checks scores 100/A."""
        score = ScoringService().calculate_domain_score(_findings())

        assert score.score == 100
        assert score.grade == "A"
        assert score.total_checks == 0

    def test_all_compliant(self) -> None:
        """Test compliant findings never deduct."""
        score = ScoringService().calculate_domain_score(
            _findings(_finding(Severity.CRITICAL, compliant=True), _finding(Severity.HIGH, compliant=True))
        )

        assert score.score == 100
        assert score.passed_checks == 2
        assert score.failed_checks == 0

    def test_weighted_deductions(self) -> None:
        """Test one failure per severity deducts 15 + 8 + 4 + 1."""
        score = ScoringService().calculate_domain_score(
            _findings(
                _finding(Severity.CRITICAL),
                _finding(Severity.HIGH),
                _finding(Severity.MEDIUM),
                _finding(Severity.LOW),
                _finding(Severity.LOW, compliant=True),
            )
        )

        assert score.score == 72
        assert score.grade == "C"
        assert (score.critical_count, score.high_count, score.medium_count, score.low_count) == (
            1,
            1,
            1,
            1,
        )
        assert score.passed_checks == 1
        assert score.failed_checks == 4
        assert score.total_checks == 5

    def test_severity_deduction_capped(self) -> None:
        """Test each severity's deduction is capped at 40."""
        score = ScoringService().calculate_domain_score(
            _findings(*[_finding(Severity.MEDIUM) for _ in range(20)])
        )

        assert score.score == 60
        assert score.medium_count == 20

    def test_score_floored_at_zero(self) -> None:
        """Test three capped severities floor the score at zero."""
        findings = (
            [_finding(Severity.CRITICAL) for _ in range(3)]
            + [_finding(Severity.HIGH) for _ in range(5)]
            + [_finding(Severity.MEDIUM) for _ in range(10)]
        )

        score = ScoringService().calculate_domain_score(_findings(*findings))

        assert score.score == 0
        assert score.grade == "F"

    def test_informational_failure_counts_without_deduction(self) -> None:
        """Test an informational failure is failed but costs nothing."""
        score = ScoringService().calculate_domain_score(
            _findings(_finding(Severity.INFORMATIONAL))
        )

        assert score.score == 100
        assert score.failed_checks == 1

    def test_top_recommendations_most_severe_first(self) -> None:
        """Test recommendations follow severity and respect the limit."""
        service = ScoringService(max_recommendations=2)
        score = service.calculate_domain_score(
            _findings(
                _finding(Severity.LOW, remediation="low fix"),
                _finding(Severity.CRITICAL, remediation="critical fix"),
                _finding(Severity.HIGH, remediation="high fix"),
                _finding(Severity.CRITICAL, compliant=True, remediation="not needed"),
            )
        )

        assert score.top_recommendations == ("critical fix", "high fix")

    def test_scoring_is_repeatable(self) -> None:
        """Test scoring the same findings twice gives equal results."""
        service = ScoringService()
        findings = _findings(
            _finding(Severity.HIGH, remediation="fix"),
            _finding(Severity.LOW, compliant=True),
        )

        first = service.calculate_domain_score(findings)
        second = service.calculate_domain_score(findings)

        assert first == second
        assert first.passed_checks + first.failed_checks <= first.total_checks


class TestSummaries:
    """Tests for summary-level scoring helpers."""

    def test_overall_ignores_unavailable(self) -> None:
        """Test unavailable domains do not drag the overall score down."""
        service = ScoringService()
        summaries = [
            DomainScoreSummary(AssessmentDomain.IDENTITY_AND_ACCESS, "IAM", score=80, grade="B"),
            DomainScoreSummary.unavailable(
                AssessmentDomain.PRIVILEGED_ACCESS, "PIM", "Collection failed"
            ),
            DomainScoreSummary(AssessmentDomain.AUDIT_LOGGING, "Audit", score=91, grade="A"),
        ]

        assert service.overall_from_summaries(summaries) == 86
        assert service.summarize(summaries) == {"available": 2, "unavailable": 1}

    def test_all_unavailable(self) -> None:
        """Test no overall score when every domain is unavailable."""
        summaries = [
            DomainScoreSummary.unavailable(AssessmentDomain.AUDIT_LOGGING, "Audit", "down")
        ]

        assert ScoringService().overall_from_summaries(summaries) is None
