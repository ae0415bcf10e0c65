"""Tests for the weighted GPA aggregator."""

from academy.services.gpa import GradeEntry, compute_gpa, compute_year_gpa
from academy.services.tiers import AssessmentTier


def test_no_entries_has_no_gpa():
    assert compute_gpa([]) is None


def test_single_module_exam():
    assert compute_gpa([GradeEntry(AssessmentTier.MODULE_EXAM, 80)]) == 80.00


def test_term_exam_counts_double():
    entries = [
        GradeEntry(AssessmentTier.MODULE_EXAM, 80),
        GradeEntry(AssessmentTier.TERM_EXAM, 90),
    ]
    assert compute_gpa(entries) == 86.67


def test_lesson_checks_carry_no_weight():
    entries = [
        GradeEntry(AssessmentTier.LESSON_CHECK, 10),
        GradeEntry(AssessmentTier.MODULE_EXAM, 80),
    ]
    assert compute_gpa(entries) == 80.00
    assert compute_gpa([GradeEntry(AssessmentTier.LESSON_CHECK, 100)]) is None


def test_cumulative_review_weight():
    entries = [
        GradeEntry(AssessmentTier.MODULE_EXAM, 80),
        GradeEntry(AssessmentTier.CUMULATIVE_REVIEW, 50),
    ]
    # (80×1 + 50×0.5) / 1.5
    assert compute_gpa(entries) == 70.00


def test_year_gpa_only_counts_that_years_exams():
    entries = [
        GradeEntry(AssessmentTier.MODULE_EXAM, 60, "y1"),
        GradeEntry(AssessmentTier.TERM_EXAM, 72, "y1"),
        GradeEntry(AssessmentTier.CUMULATIVE_REVIEW, 100, "y1"),
        GradeEntry(AssessmentTier.TERM_EXAM, 99, "y2"),
    ]
    # (60 + 72×2) / 3 = 68
    assert compute_year_gpa(entries, "y1") == 68.00
    assert compute_year_gpa(entries, "y3") is None
