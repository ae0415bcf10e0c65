"""Assessment tiers, letter grades and the per-tier policy table.

Every tier carries exactly one :class:`TierPolicy`.  The table is a closed
mapping over :class:`AssessmentTier`; adding a tier without a policy record
fails at import time.

| Score   | Grade | Classification |
|---------|-------|----------------|
| 90–100  | A     | Mastery        |
| 80–89   | B     | Proficient     |
| 70–79   | C     | Adequate       |
| 60–69   | D     | Insufficient   |
| 0–59    | F     | Failure        |
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any


class AssessmentTier(str, enum.Enum):
    LESSON_CHECK = "lesson_check"
    MODULE_EXAM = "module_exam"
    TERM_EXAM = "term_exam"
    CUMULATIVE_REVIEW = "cumulative_review"

    @property
    def policy(self) -> "TierPolicy":
        return TIER_POLICIES[self]


class GradeLetter(str, enum.Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


@dataclass(frozen=True)
class TierPolicy:
    """Pass threshold, retry limits and GPA weight of one tier."""

    pass_threshold: float
    max_attempts: int
    period_days: int
    cooldown_hours: int
    gpa_weight: float
    min_questions: int


TIER_POLICIES: dict[AssessmentTier, TierPolicy] = {
    AssessmentTier.LESSON_CHECK: TierPolicy(
        pass_threshold=80, max_attempts=3, period_days=1,
        cooldown_hours=0, gpa_weight=0.0, min_questions=6,
    ),
    AssessmentTier.MODULE_EXAM: TierPolicy(
        pass_threshold=75, max_attempts=3, period_days=7,
        cooldown_hours=24, gpa_weight=1.0, min_questions=15,
    ),
    AssessmentTier.TERM_EXAM: TierPolicy(
        pass_threshold=70, max_attempts=2, period_days=14,
        cooldown_hours=48, gpa_weight=2.0, min_questions=25,
    ),
    AssessmentTier.CUMULATIVE_REVIEW: TierPolicy(
        pass_threshold=70, max_attempts=3, period_days=7,
        cooldown_hours=24, gpa_weight=0.5, min_questions=10,
    ),
}

_missing = set(AssessmentTier) - set(TIER_POLICIES)
if _missing:
    raise RuntimeError(f"No policy configured for tiers: {sorted(t.value for t in _missing)}")


def calculate_grade(score: float) -> GradeLetter:
    """Map a 0–100 score onto its letter grade."""
    if score >= 90:
        return GradeLetter.A
    if score >= 80:
        return GradeLetter.B
    if score >= 70:
        return GradeLetter.C
    if score >= 60:
        return GradeLetter.D
    return GradeLetter.F


def get_pass_threshold(tier: AssessmentTier) -> float:
    return TIER_POLICIES[AssessmentTier(tier)].pass_threshold


def policy_for(tier: AssessmentTier, overrides: dict[str, Any] | None = None) -> TierPolicy:
    """Return the tier's policy with any non-null *overrides* applied.

    *overrides* uses the TierPolicy field names; ``None`` values keep the
    tier default.
    """
    base = TIER_POLICIES[AssessmentTier(tier)]
    if not overrides:
        return base
    changes = {k: v for k, v in overrides.items() if v is not None}
    unknown = set(changes) - set(TierPolicy.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown policy fields: {sorted(unknown)}")
    return replace(base, **changes)
