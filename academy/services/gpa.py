"""Weighted GPA over passed higher-tier assessments.

Credit weights come from the tier policy table:
module exams 1.0, term exams 2.0, cumulative reviews 0.5, lesson checks 0.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, NamedTuple

from academy.services.tiers import AssessmentTier

# Year advancement counts module and term exams only.
YEAR_GPA_TIERS = frozenset({AssessmentTier.MODULE_EXAM, AssessmentTier.TERM_EXAM})


class GradeEntry(NamedTuple):
    """One terminal transcript row: tier, score and (optionally) its year."""

    tier: AssessmentTier
    score: float
    year_id: Any = None


def _weighted_average(entries: Iterable[Any], tiers: frozenset | None = None) -> float | None:
    weighted_sum = 0.0
    total_weight = 0.0
    for entry in entries:
        tier = AssessmentTier(entry.tier)
        if tiers is not None and tier not in tiers:
            continue
        weight = tier.policy.gpa_weight
        if weight == 0:
            continue
        weighted_sum += float(entry.score) * weight
        total_weight += weight

    if total_weight == 0:
        return None
    return round(weighted_sum / total_weight, 2)


def compute_gpa(entries: Iterable[Any]) -> float | None:
    """Program GPA, or None until a weighted entry exists.

    *entries* expose ``tier`` and ``score`` (GradeEntry or TranscriptEntry rows).
    """
    return _weighted_average(entries)


def compute_year_gpa(entries: Iterable[Any], year_id: Any) -> float | None:
    """GPA of one year from its module and term exams only."""
    scoped = [e for e in entries if e.year_id is not None and str(e.year_id) == str(year_id)]
    return _weighted_average(scoped, YEAR_GPA_TIERS)
