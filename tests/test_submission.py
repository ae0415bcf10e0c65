"""Integration tests for the submission workflow against a real session."""

import uuid
from datetime import timedelta

import pytest

from academy.core.clock import as_utc
from academy.db.models import Assessment, Attempt, Progress, TranscriptEntry, WeakArea
from academy.services import submission as submission_service
from academy.services.curriculum import load_curriculum
from academy.services.progression import can_access_lesson, can_access_year
from academy.services.submission import (
    AssessmentNotFound,
    ConflictingUpdate,
    DuplicateSubmission,
    RetryNotAllowed,
    evaluate_assessment,
    submit_assessment,
)
from academy.services.tiers import AssessmentTier, GradeLetter


def _progress(db, user_id, lesson_id):
    return (
        db.query(Progress)
        .filter(Progress.user_id == user_id, Progress.lesson_id == lesson_id)
        .first()
    )


def test_passing_lesson_check_unlocks_next_lesson(db, student, curriculum, sheet, now):
    check = curriculum.checks[0]
    l1, l2 = curriculum.lessons[:2]
    assert can_access_lesson(db, student.id, l2.id, now=now).accessible is False

    outcome = submit_assessment(db, student.id, check.id, sheet(check, 5), now=now)

    assert outcome.attempt.attempt_number == 1
    assert outcome.result.score == 83.33
    assert outcome.result.grade is GradeLetter.B
    assert outcome.result.passed is True
    assert outcome.retry_action is None
    assert _progress(db, student.id, l1.id).completed is True
    assert can_access_lesson(db, student.id, l2.id, now=now).accessible is True


def test_failing_lesson_check(db, student, curriculum, sheet, now):
    check = curriculum.checks[0]
    outcome = submit_assessment(db, student.id, check.id, sheet(check, 4), now=now)

    assert outcome.result.score == 66.67
    assert outcome.result.grade is GradeLetter.D
    assert outcome.result.passed is False
    assert outcome.result.can_retry is True
    assert outcome.retry_action.type == "retry"

    # questions 5 and 6 missed: identification, place-value
    assert outcome.result.weak_concepts == ["identification", "place-value"]
    counts = {w.concept_tag: w.error_count for w in db.query(WeakArea).all()}
    assert counts == {"identification": 1, "place-value": 1}

    assert _progress(db, student.id, curriculum.lessons[0].id).completed is False
    assert can_access_lesson(db, student.id, curriculum.lessons[1].id, now=now).accessible is False


def test_lesson_completion_is_sticky(db, student, curriculum, sheet, now):
    check = curriculum.checks[0]
    submit_assessment(db, student.id, check.id, sheet(check, 6), now=now)
    submit_assessment(db, student.id, check.id, sheet(check, 1), now=now + timedelta(minutes=5))

    prog = _progress(db, student.id, curriculum.lessons[0].id)
    assert prog.completed is True
    assert prog.last_score == 16.67


def test_escalation_follows_attempt_number(db, student, curriculum, sheet, now):
    check = curriculum.checks[0]
    actions = [
        submit_assessment(
            db, student.id, check.id, sheet(check, 0), now=now + timedelta(minutes=i)
        ).retry_action.type
        for i in range(3)
    ]
    assert actions == ["retry", "revisit_lesson", "review_required"]

    # six misses per attempt, three attempts
    counts = {w.concept_tag: w.error_count for w in db.query(WeakArea).all()}
    assert counts == {"identification": 9, "place-value": 9}


def test_lesson_check_daily_limit(db, student, curriculum, sheet, now):
    check = curriculum.checks[0]
    for i in range(3):
        submit_assessment(db, student.id, check.id, sheet(check, 0), now=now + timedelta(minutes=i))

    with pytest.raises(RetryNotAllowed) as exc:
        submit_assessment(db, student.id, check.id, sheet(check, 6), now=now + timedelta(hours=1))
    assert exc.value.next_eligible_at == now + timedelta(days=1)
    assert db.query(Attempt).count() == 3


def test_module_exam_cooldown(db, student, curriculum, sheet, now):
    exam = curriculum.module_exams[0]
    first = submit_assessment(db, student.id, exam.id, sheet(exam, 1), now=now)
    assert first.result.passed is False
    assert first.result.can_retry is False
    assert first.result.next_retry_available_at == now + timedelta(hours=24)
    assert first.retry_action.cooldown_hours == 24

    with pytest.raises(RetryNotAllowed):
        submit_assessment(db, student.id, exam.id, sheet(exam, 4), now=now + timedelta(hours=1))

    second = submit_assessment(db, student.id, exam.id, sheet(exam, 4), now=now + timedelta(hours=25))
    assert second.attempt.attempt_number == 2
    assert second.result.passed is True


def test_module_exam_pass_writes_transcript_once(db, student, curriculum, sheet, now):
    exam = curriculum.module_exams[0]
    submit_assessment(db, student.id, exam.id, sheet(exam, 1), now=now)
    submit_assessment(db, student.id, exam.id, sheet(exam, 3), now=now + timedelta(days=2))
    submit_assessment(db, student.id, exam.id, sheet(exam, 4), now=now + timedelta(days=4))

    rows = db.query(TranscriptEntry).all()
    assert len(rows) == 1
    entry = rows[0]
    assert entry.score == 75.0
    assert entry.grade is GradeLetter.C
    assert entry.attempt_count == 2
    assert entry.module_id == curriculum.modules[0].id
    assert entry.term_id == curriculum.terms[0].id
    assert entry.year_id == curriculum.years[0].id
    assert as_utc(entry.first_attempted_at) == now


def test_year_gate_after_full_year(db, student, curriculum, sheet, now):
    t1_exam, t2_exam, _ = curriculum.term_exams
    y2 = curriculum.years[1]

    submit_assessment(db, student.id, t1_exam.id, sheet(t1_exam, 4), now=now)
    submit_assessment(db, student.id, t2_exam.id, sheet(t2_exam, 4), now=now)
    decision = can_access_year(db, student.id, y2.id)
    assert decision.accessible is False
    assert "cumulative review" in decision.reason

    review = curriculum.review
    submit_assessment(db, student.id, review.id, sheet(review, 4), now=now)
    assert can_access_year(db, student.id, y2.id).accessible is True


def test_evaluate_stores_nothing(db, student, curriculum, sheet, now):
    check = curriculum.checks[0]
    result = evaluate_assessment(db, student.id, check.id, sheet(check, 2), now=now)
    assert result.passed is False
    assert db.query(Attempt).count() == 0
    assert db.query(WeakArea).count() == 0


def test_unknown_assessment(db, student, now):
    with pytest.raises(AssessmentNotFound):
        submit_assessment(db, student.id, uuid.uuid4(), {}, now=now)


def test_concurrent_duplicate_is_rejected(db, student, curriculum, sheet, now, monkeypatch):
    check = curriculum.checks[0]
    submit_assessment(db, student.id, check.id, sheet(check, 0), now=now)

    # a racing request that read the history before the first one committed
    monkeypatch.setattr(submission_service, "get_attempts", lambda *args: [])
    with pytest.raises(DuplicateSubmission):
        submit_assessment(db, student.id, check.id, sheet(check, 6), now=now)

    assert db.query(Attempt).count() == 1
    assert _progress(db, student.id, curriculum.lessons[0].id).completed is False


def test_conflicting_ledger_write_is_not_a_duplicate(db, student, curriculum, sheet, now, monkeypatch):
    check = curriculum.checks[0]
    db.add(WeakArea(user_id=student.id, concept_tag="identification", error_count=1))
    db.commit()

    def racing_ledger_update(db, user_id, misses, now=None):
        # a stale read: another request inserted this row after ours looked
        db.add(WeakArea(user_id=user_id, concept_tag="identification", error_count=1))
        db.flush()

    monkeypatch.setattr(submission_service, "update_weak_areas", racing_ledger_update)
    with pytest.raises(ConflictingUpdate):
        submit_assessment(db, student.id, check.id, sheet(check, 0), now=now)

    assert db.query(Attempt).count() == 0
    assert db.query(WeakArea).one().error_count == 1


def test_oldest_assessment_wins_for_a_scope(db, curriculum):
    m1 = curriculum.modules[0]
    original = curriculum.module_exams[0]
    db.add(
        Assessment(
            tier=AssessmentTier.MODULE_EXAM,
            title="Module 1 exam (copy)",
            module_id=m1.id,
            created_at=as_utc(original.created_at) + timedelta(hours=1),
        )
    )
    db.commit()

    index = load_curriculum(db)
    assert index.assessment_for(AssessmentTier.MODULE_EXAM, m1.id) == str(original.id)
