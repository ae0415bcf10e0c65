"""Progression gate over lessons, modules, terms and years.

Lesson → Lesson:   previous lesson's check passed (if it has one)
Module → Module:   previous module's lessons completed + module exam passed
Term → Term:       previous term exam passed + no concept at the review threshold
Year → Year:       all term exams + cumulative review passed + year GPA ≥ minimum

Denials are values, not exceptions: every predicate returns an
AccessDecision carrying a human-readable reason.  Nothing is cached; the
``can_access_*`` entry points reload curriculum and learner state per call.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from academy.config import settings
from academy.core.clock import as_utc, utcnow
from academy.db.models import (
    Attempt,
    Progress,
    Subscription,
    SubscriptionStatusEnum,
    TranscriptEntry,
    WeakArea,
)
from academy.schemas.curriculum import AccessDecision
from academy.services.curriculum import CurriculumIndex, load_curriculum
from academy.services.gpa import GradeEntry, compute_year_gpa
from academy.services.tiers import AssessmentTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionState:
    status: str
    current_period_end: datetime | None = None


@dataclass
class LearnerRecord:
    """Everything the gate needs to know about one learner."""

    user_id: str
    passed_assessment_ids: set[str] = field(default_factory=set)
    completed_lesson_ids: set[str] = field(default_factory=set)
    weak_areas: list[tuple[str, int]] = field(default_factory=list)
    subscription: SubscriptionState | None = None
    transcript: list[GradeEntry] = field(default_factory=list)

    def has_passed(self, assessment_id: str | None) -> bool:
        return assessment_id is not None and assessment_id in self.passed_assessment_ids


def _allow() -> AccessDecision:
    return AccessDecision(accessible=True)


def _deny(reason: str) -> AccessDecision:
    return AccessDecision(accessible=False, reason=reason)


def _subscription_decision(learner: LearnerRecord, now: datetime) -> AccessDecision | None:
    sub = learner.subscription
    if sub is None or sub.status != SubscriptionStatusEnum.ACTIVE.value:
        return _deny("An active subscription is required to access this term.")
    if sub.current_period_end is not None and as_utc(sub.current_period_end) < now:
        return _deny("Your subscription has expired.")
    return None


# ── Pure predicates ───────────────────────────────────────────────────────────


def lesson_access(
    curriculum: CurriculumIndex,
    learner: LearnerRecord,
    lesson_id: Any,
    now: datetime | None = None,
) -> AccessDecision:
    lesson = curriculum.lesson(lesson_id)
    if lesson is None:
        return _deny("Lesson not found.")

    first = curriculum.first_lesson
    if first is not None and first.id == lesson.id:
        return _allow()

    term = curriculum.term_of_lesson(lesson.id)
    if term is not None and term.requires_subscription:
        denied = _subscription_decision(learner, as_utc(now) if now else utcnow())
        if denied is not None:
            return denied

    previous_id = curriculum.previous_in_sequence(lesson.id)
    if previous_id is None:
        return _allow()

    check_id = curriculum.assessment_for(AssessmentTier.LESSON_CHECK, previous_id)
    if check_id is None or learner.has_passed(check_id):
        return _allow()

    return _deny("You must pass the previous lesson's quiz before accessing this lesson.")


def term_access(
    curriculum: CurriculumIndex,
    learner: LearnerRecord,
    term_id: Any,
) -> AccessDecision:
    term = curriculum.term(term_id)
    if term is None:
        return _deny("Term not found.")

    previous = curriculum.previous_term(term.id)
    if previous is None:
        return _allow()

    exam_id = curriculum.assessment_for(AssessmentTier.TERM_EXAM, previous.id)
    if exam_id is not None and not learner.has_passed(exam_id):
        return _deny(
            "You must pass the previous term's final examination before proceeding to this term."
        )

    blocking = [
        tag
        for tag, count in learner.weak_areas
        if count >= settings.WEAK_AREA_REVIEW_THRESHOLD
    ]
    if blocking:
        return _deny(
            "The following concepts require targeted review before progression: "
            f"{', '.join(blocking)}."
        )

    return _allow()


def module_access(
    curriculum: CurriculumIndex,
    learner: LearnerRecord,
    module_id: Any,
) -> AccessDecision:
    module = curriculum.module(module_id)
    if module is None:
        return _deny("Module not found.")

    previous = curriculum.previous_module(module.id)
    if previous is None:
        return term_access(curriculum, learner, module.term_id)

    lessons = curriculum.lessons_in_module(previous.id)
    if any(les.id not in learner.completed_lesson_ids for les in lessons):
        return _deny(
            "All lessons in the previous module must be completed before proceeding."
        )

    exam_id = curriculum.assessment_for(AssessmentTier.MODULE_EXAM, previous.id)
    if exam_id is not None and not learner.has_passed(exam_id):
        return _deny(
            "You must pass the previous module's examination before proceeding."
        )

    return _allow()


def year_access(
    curriculum: CurriculumIndex,
    learner: LearnerRecord,
    year_id: Any,
) -> AccessDecision:
    year = curriculum.year(year_id)
    if year is None:
        return _deny("Year not found.")

    previous = curriculum.previous_year(year.id)
    if previous is None:
        return _allow()

    for term in curriculum.terms_in_year(previous.id):
        exam_id = curriculum.assessment_for(AssessmentTier.TERM_EXAM, term.id)
        if exam_id is not None and not learner.has_passed(exam_id):
            return _deny(
                "All term examinations in the previous year must be passed before advancing."
            )

    review_id = curriculum.assessment_for(AssessmentTier.CUMULATIVE_REVIEW, previous.id)
    if review_id is not None and not learner.has_passed(review_id):
        return _deny(
            "The cumulative review for the previous year must be passed before advancing."
        )

    year_gpa = compute_year_gpa(learner.transcript, previous.id)
    if year_gpa is not None and year_gpa < settings.YEAR_GPA_MINIMUM:
        return _deny(
            f"Your GPA for the previous year ({year_gpa:.2f}) is below the required "
            f"minimum of {settings.YEAR_GPA_MINIMUM:g}."
        )

    return _allow()


# ── Loading learner state ─────────────────────────────────────────────────────


def load_learner(db: Session, user_id: uuid.UUID) -> LearnerRecord:
    passed = {
        str(row.assessment_id)
        for row in db.query(Attempt.assessment_id)
        .filter(Attempt.user_id == user_id, Attempt.passed.is_(True))
        .distinct()
        .all()
    }
    completed = {
        str(row.lesson_id)
        for row in db.query(Progress.lesson_id)
        .filter(Progress.user_id == user_id, Progress.completed.is_(True))
        .all()
    }
    weak = [
        (w.concept_tag, w.error_count)
        for w in db.query(WeakArea)
        .filter(WeakArea.user_id == user_id)
        .order_by(WeakArea.error_count.desc(), WeakArea.concept_tag)
        .all()
    ]
    sub = (
        db.query(Subscription)
        .filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatusEnum.ACTIVE,
        )
        .order_by(Subscription.updated_at.desc())
        .first()
    )
    transcript = [
        GradeEntry(t.tier, t.score, str(t.year_id) if t.year_id else None)
        for t in db.query(TranscriptEntry)
        .filter(TranscriptEntry.user_id == user_id, TranscriptEntry.passed.is_(True))
        .all()
    ]
    return LearnerRecord(
        user_id=str(user_id),
        passed_assessment_ids=passed,
        completed_lesson_ids=completed,
        weak_areas=weak,
        subscription=(
            SubscriptionState(sub.status.value, sub.current_period_end) if sub else None
        ),
        transcript=transcript,
    )


# ── DB entry points ───────────────────────────────────────────────────────────


def _logged(scope: str, user_id: Any, scope_id: Any, decision: AccessDecision) -> AccessDecision:
    if not decision.accessible:
        logger.info("%s %s denied for %s: %s", scope, scope_id, user_id, decision.reason)
    return decision


def can_access_lesson(
    db: Session, user_id: uuid.UUID, lesson_id: Any, now: datetime | None = None
) -> AccessDecision:
    decision = lesson_access(load_curriculum(db), load_learner(db, user_id), lesson_id, now=now)
    return _logged("Lesson", user_id, lesson_id, decision)


def can_access_module(db: Session, user_id: uuid.UUID, module_id: Any) -> AccessDecision:
    decision = module_access(load_curriculum(db), load_learner(db, user_id), module_id)
    return _logged("Module", user_id, module_id, decision)


def can_access_term(db: Session, user_id: uuid.UUID, term_id: Any) -> AccessDecision:
    decision = term_access(load_curriculum(db), load_learner(db, user_id), term_id)
    return _logged("Term", user_id, term_id, decision)


def can_access_year(db: Session, user_id: uuid.UUID, year_id: Any) -> AccessDecision:
    decision = year_access(load_curriculum(db), load_learner(db, user_id), year_id)
    return _logged("Year", user_id, year_id, decision)
