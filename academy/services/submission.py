"""Submission workflow: grade → persist attempt → progress → ledger.

All writes for one submission happen in one session transaction, committed
once at the end.  Two racing submissions for the same (user, assessment)
collide on the attempt-number unique constraint; the loser is rolled back
and reported as a duplicate.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from academy.core.clock import as_utc, utcnow
from academy.db.models import (
    Assessment,
    Attempt,
    Module,
    Progress,
    Question,
    Term,
    TranscriptEntry,
)
from academy.schemas.assessment import AssessmentResult, RetryAction
from academy.services.grading import (
    assemble_assessment_result,
    extract_incorrect_concepts,
    grade,
    grade_assessment,
)
from academy.services.retry import retry_action, retry_eligibility
from academy.services.tiers import AssessmentTier, TierPolicy, policy_for
from academy.services.weak_areas import update_weak_areas

logger = logging.getLogger(__name__)


class AcademyError(Exception):
    """Base class for service-layer failures translated to HTTP errors by the routers."""


class AssessmentNotFound(AcademyError):
    def __init__(self, assessment_id: Any):
        super().__init__(f"Assessment {assessment_id} not found")
        self.assessment_id = assessment_id


class RetryNotAllowed(AcademyError):
    def __init__(self, next_eligible_at: datetime | None):
        super().__init__("Another attempt is not allowed yet")
        self.next_eligible_at = next_eligible_at


class DuplicateSubmission(AcademyError):
    """A concurrent submission already claimed this attempt number."""


class ConflictingUpdate(AcademyError):
    """A concurrent request wrote the same progress, transcript or ledger row first."""


@dataclass
class QuestionBank:
    """An assessment's questions and answer lookups, fully materialised."""

    assessment: Assessment
    questions: list[Question]
    correct_by_question: dict[str, str]
    explanation_by_answer: dict[str, str | None]


@dataclass
class SubmissionOutcome:
    attempt: Attempt
    result: AssessmentResult
    retry_action: RetryAction | None


# ── Loading ───────────────────────────────────────────────────────────────────


def assessment_policy(assessment: Assessment) -> TierPolicy:
    """Tier defaults merged with the row's non-null overrides."""
    return policy_for(
        assessment.tier,
        {
            "pass_threshold": assessment.pass_threshold,
            "max_attempts": assessment.max_attempts_per_period,
            "period_days": assessment.period_days,
            "cooldown_hours": assessment.cooldown_hours,
        },
    )


def load_question_bank(db: Session, assessment_id: uuid.UUID) -> QuestionBank:
    assessment = db.get(Assessment, assessment_id)
    if assessment is None:
        raise AssessmentNotFound(assessment_id)

    questions = (
        db.query(Question)
        .options(selectinload(Question.answers))
        .filter(Question.assessment_id == assessment.id)
        .order_by(Question.position)
        .all()
    )
    correct_by_question: dict[str, str] = {}
    explanation_by_answer: dict[str, str | None] = {}
    for question in questions:
        for answer in question.answers:
            explanation_by_answer[str(answer.id)] = answer.explanation
            if answer.is_correct:
                correct_by_question[str(question.id)] = str(answer.id)

    bank = QuestionBank(assessment, questions, correct_by_question, explanation_by_answer)
    warning = question_count_warning(bank)
    if warning:
        logger.warning("Assessment %s: %s", assessment.id, warning)
    return bank


def question_count_warning(bank: QuestionBank) -> str | None:
    """Content check: flag assessments with fewer gradable questions than their tier expects.

    Advisory only; a short assessment still grades normally.
    """
    minimum = AssessmentTier(bank.assessment.tier).policy.min_questions
    gradable = len(bank.correct_by_question)
    if gradable >= minimum:
        return None
    return f"Has {gradable} gradable questions; {bank.assessment.tier.value} expects at least {minimum}."


def get_attempts(db: Session, user_id: uuid.UUID, assessment_id: uuid.UUID) -> list[Attempt]:
    return (
        db.query(Attempt)
        .filter(Attempt.user_id == user_id, Attempt.assessment_id == assessment_id)
        .order_by(Attempt.attempt_number)
        .all()
    )


# ── Operations ────────────────────────────────────────────────────────────────


def evaluate_assessment(
    db: Session,
    user_id: uuid.UUID,
    assessment_id: uuid.UUID,
    answers: Mapping[str, str],
    now: datetime | None = None,
) -> AssessmentResult:
    """Grade without storing anything (preview / practice)."""
    bank = load_question_bank(db, assessment_id)
    return grade_assessment(
        bank.questions,
        answers,
        bank.correct_by_question,
        bank.explanation_by_answer,
        bank.assessment.tier,
        get_attempts(db, user_id, assessment_id),
        now=now,
        policy=assessment_policy(bank.assessment),
    )


def upsert_lesson_progress(
    db: Session,
    user_id: uuid.UUID,
    lesson_id: uuid.UUID,
    score: float | None,
    completed: bool,
    now: datetime | None = None,
) -> Progress:
    """Create or update the learner's row for a lesson.  Completion is sticky."""
    prog = (
        db.query(Progress)
        .filter(Progress.user_id == user_id, Progress.lesson_id == lesson_id)
        .first()
    )
    if prog is None:
        prog = Progress(user_id=user_id, lesson_id=lesson_id, completed=False)
        db.add(prog)
    prog.completed = bool(prog.completed) or completed
    if score is not None:
        prog.last_score = score
    prog.updated_at = now or utcnow()
    return prog


def _record_transcript(
    db: Session,
    user_id: uuid.UUID,
    assessment: Assessment,
    attempt: Attempt,
    history: list[Attempt],
    now: datetime,
) -> None:
    """Write the terminal transcript row on the first pass; later passes keep it."""
    exists = (
        db.query(TranscriptEntry.id)
        .filter(
            TranscriptEntry.user_id == user_id,
            TranscriptEntry.assessment_id == assessment.id,
        )
        .first()
    )
    if exists:
        return

    module_id = assessment.module_id
    term_id = assessment.term_id
    year_id = assessment.year_id
    if module_id is not None:
        module = db.get(Module, module_id)
        term_id = module.term_id if module else None
    if term_id is not None and year_id is None:
        term = db.get(Term, term_id)
        year_id = term.year_id if term else None

    db.add(
        TranscriptEntry(
            user_id=user_id,
            assessment_id=assessment.id,
            tier=assessment.tier,
            title=assessment.title,
            year_id=year_id,
            term_id=term_id,
            module_id=module_id,
            score=attempt.score,
            grade=attempt.grade,
            passed=True,
            attempt_count=attempt.attempt_number,
            first_attempted_at=min(as_utc(a.created_at) for a in history),
            completed_at=now,
        )
    )


def submit_assessment(
    db: Session,
    user_id: uuid.UUID,
    assessment_id: uuid.UUID,
    answers: Mapping[str, str],
    now: datetime | None = None,
) -> SubmissionOutcome:
    """Grade and store one attempt, then update progress, transcript and ledger."""
    now = now or utcnow()
    bank = load_question_bank(db, assessment_id)
    assessment = bank.assessment
    tier = AssessmentTier(assessment.tier)
    policy = assessment_policy(assessment)

    prior = get_attempts(db, user_id, assessment.id)
    eligibility = retry_eligibility(tier, prior, now=now, policy=policy)
    if not eligibility.eligible:
        logger.info(
            "Attempt on %s by %s refused until %s",
            assessment.id, user_id, eligibility.next_eligible_at,
        )
        raise RetryNotAllowed(eligibility.next_eligible_at)

    graded = grade(
        bank.questions,
        answers,
        bank.correct_by_question,
        bank.explanation_by_answer,
        threshold=policy.pass_threshold,
    )
    misses = extract_incorrect_concepts(graded)
    attempt_number = len(prior) + 1

    # ── Persist attempt ──────────────────────────────────────────────────
    attempt = Attempt(
        user_id=user_id,
        assessment_id=assessment.id,
        score=graded.score,
        grade=graded.grade,
        passed=graded.passed,
        attempt_number=attempt_number,
        answers_given=[
            {
                "question_id": f.question_id,
                "answer_id": f.selected_answer_id,
                "correct": f.correct,
            }
            for f in graded.feedback
        ],
        feedback_summary={"weak_concepts": list(dict.fromkeys(m.concept_tag for m in misses))},
        created_at=now,
    )
    db.add(attempt)

    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "Concurrent submission for %s by %s (attempt %d): %s",
            assessment.id, user_id, attempt_number, exc.orig,
        )
        raise DuplicateSubmission(
            "This attempt was already recorded by a concurrent submission."
        ) from exc

    try:
        # ── Progress / transcript ────────────────────────────────────────
        if tier is AssessmentTier.LESSON_CHECK and assessment.lesson_id is not None:
            upsert_lesson_progress(
                db, user_id, assessment.lesson_id, graded.score, graded.passed, now
            )
        elif graded.passed and tier is not AssessmentTier.LESSON_CHECK:
            _record_transcript(db, user_id, assessment, attempt, prior + [attempt], now)

        # ── Ledger ───────────────────────────────────────────────────────
        update_weak_areas(db, user_id, misses, now=now)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "Conflicting update while recording attempt %d on %s by %s: %s",
            attempt_number, assessment.id, user_id, exc.orig,
        )
        raise ConflictingUpdate(
            "Another request updated this learner's records at the same time. Please resubmit."
        ) from exc

    db.refresh(attempt)
    logger.info(
        "Attempt %d on %s (%s) by %s: %.2f%% %s",
        attempt_number, assessment.id, tier.value, user_id,
        graded.score, "passed" if graded.passed else "failed",
    )

    result = assemble_assessment_result(graded, tier, prior + [attempt], now=now, policy=policy)
    action = None
    if not result.passed:
        action = retry_action(tier, attempt_number, result.weak_concepts, policy=policy)

    return SubmissionOutcome(attempt=attempt, result=result, retry_action=action)
