"""
Assessment engine and scoring for tenantscope.

Components:
    - AssessmentEngine: Runs assessment modules and persists results
    - ScoringService: Severity-weighted domain scores and letter grades
"""

from tenantscope.engine.scoring import (
    GRADE_THRESHOLDS,
    MAX_SEVERITY_DEDUCTION,
    SEVERITY_WEIGHTS,
    ScoringService,
    calculate_grade,
    calculate_overall_score,
)
from tenantscope.engine.assessment import (
    AssessmentEngine,
    EngineError,
    QuotaExceededError,
    RunNotFoundError,
    TenantNotFoundError,
)

__all__ = [
    "GRADE_THRESHOLDS",
    "MAX_SEVERITY_DEDUCTION",
    "SEVERITY_WEIGHTS",
    "ScoringService",
    "calculate_grade",
    "calculate_overall_score",
    "AssessmentEngine",
    "EngineError",
    "QuotaExceededError",
    "RunNotFoundError",
    "TenantNotFoundError",
]
