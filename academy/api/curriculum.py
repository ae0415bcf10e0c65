"""Curriculum browsing routes.

Every listing is evaluated against the progression gate for the current
learner, so locked items come back with the reason they are locked.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from academy.api.deps import get_current_user
from academy.db.models import Lesson, Module, Term, User, Year
from academy.db.session import get_db
from academy.schemas.curriculum import (
    AccessDecision,
    LessonRead,
    ModuleRead,
    TermRead,
    YearRead,
)
from academy.services.curriculum import load_curriculum
from academy.services.progression import (
    can_access_lesson,
    can_access_module,
    can_access_term,
    can_access_year,
    lesson_access,
    load_learner,
    module_access,
    term_access,
    year_access,
)
from academy.services.tiers import AssessmentTier

logger = logging.getLogger(__name__)
router = APIRouter()

_ACCESS_CHECKS = {
    "lessons": can_access_lesson,
    "modules": can_access_module,
    "terms": can_access_term,
    "years": can_access_year,
}


@router.get("/years", response_model=list[YearRead])
def list_years(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    curriculum = load_curriculum(db)
    learner = load_learner(db, current_user.id)
    years = db.query(Year).order_by(Year.order).all()

    out: list[YearRead] = []
    for y in years:
        decision = year_access(curriculum, learner, y.id)
        out.append(
            YearRead(
                id=y.id,
                title=y.title,
                order=y.order,
                description=y.description,
                term_count=len(curriculum.terms_in_year(y.id)),
                accessible=decision.accessible,
                reason=decision.reason,
            )
        )
    return out


@router.get("/years/{year_id}/terms", response_model=list[TermRead])
def list_terms(
    year_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if db.get(Year, year_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Year not found")

    curriculum = load_curriculum(db)
    learner = load_learner(db, current_user.id)
    terms = db.query(Term).filter(Term.year_id == year_id).order_by(Term.order).all()

    out: list[TermRead] = []
    for t in terms:
        decision = term_access(curriculum, learner, t.id)
        out.append(
            TermRead(
                id=t.id,
                year_id=t.year_id,
                title=t.title,
                order=t.order,
                term_number=t.term_number,
                requires_subscription=t.requires_subscription,
                accessible=decision.accessible,
                reason=decision.reason,
            )
        )
    return out


@router.get("/terms/{term_id}/modules", response_model=list[ModuleRead])
def list_modules(
    term_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Modules of a term with locked / completed / exam_passed flags."""
    if db.get(Term, term_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Term not found")

    curriculum = load_curriculum(db)
    learner = load_learner(db, current_user.id)
    modules = db.query(Module).filter(Module.term_id == term_id).order_by(Module.order).all()

    out: list[ModuleRead] = []
    for m in modules:
        decision = module_access(curriculum, learner, m.id)
        lessons = curriculum.lessons_in_module(m.id)
        completed = bool(lessons) and all(
            les.id in learner.completed_lesson_ids for les in lessons
        )
        exam_id = curriculum.assessment_for(AssessmentTier.MODULE_EXAM, m.id)
        out.append(
            ModuleRead(
                id=m.id,
                term_id=m.term_id,
                title=m.title,
                order=m.order,
                lesson_count=len(lessons),
                locked=not decision.accessible,
                completed=completed,
                exam_passed=learner.has_passed(exam_id),
                reason=decision.reason,
            )
        )
    return out


@router.get("/modules/{module_id}/lessons", response_model=list[LessonRead])
def list_lessons(
    module_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Lessons of a module; a lesson is locked unless the gate lets the learner in."""
    if db.get(Module, module_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found")

    curriculum = load_curriculum(db)
    learner = load_learner(db, current_user.id)
    lessons = db.query(Lesson).filter(Lesson.module_id == module_id).order_by(Lesson.order).all()

    out: list[LessonRead] = []
    for les in lessons:
        decision = lesson_access(curriculum, learner, les.id)
        quiz_id = curriculum.assessment_for(AssessmentTier.LESSON_CHECK, les.id)
        out.append(
            LessonRead(
                id=les.id,
                module_id=les.module_id,
                title=les.title,
                order=les.order,
                quiz_id=uuid.UUID(quiz_id) if quiz_id else None,
                locked=not decision.accessible,
                completed=str(les.id) in learner.completed_lesson_ids,
                reason=decision.reason,
            )
        )
    return out


@router.get("/{scope}/{scope_id}/access", response_model=AccessDecision)
def check_access(
    scope: str,
    scope_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Evaluate the progression gate for a single lesson, module, term or year."""
    check = _ACCESS_CHECKS.get(scope)
    if check is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown scope '{scope}'. Use one of: {', '.join(_ACCESS_CHECKS)}",
        )
    return check(db, current_user.id, scope_id)
