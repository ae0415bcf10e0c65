"""Progress & analytics routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from academy.api.deps import get_current_user
from academy.db.models import Lesson, Progress, TranscriptEntry, User
from academy.db.session import get_db
from academy.schemas.progress import (
    LessonProgressRead,
    ProgressRead,
    ProgressUpdate,
    TranscriptEntryRead,
    TranscriptRead,
    WeakAreaRead,
    WeakAreasRead,
)
from academy.services.gpa import GradeEntry, compute_gpa
from academy.services.progression import can_access_lesson
from academy.services.submission import upsert_lesson_progress
from academy.services.weak_areas import get_required_reviews, get_weak_areas, review_items

logger = logging.getLogger(__name__)
router = APIRouter()


def _transcript(db: Session, user: User) -> list[TranscriptEntry]:
    return (
        db.query(TranscriptEntry)
        .filter(TranscriptEntry.user_id == user.id)
        .order_by(TranscriptEntry.completed_at)
        .all()
    )


def _gpa(entries: list[TranscriptEntry]) -> float | None:
    return compute_gpa(GradeEntry(e.tier, e.score) for e in entries if e.passed)


@router.get("/", response_model=ProgressRead)
def get_progress(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return the current learner's lesson progress, GPA and concept ledger."""
    rows = (
        db.query(Progress)
        .filter(Progress.user_id == current_user.id)
        .order_by(Progress.updated_at)
        .all()
    )
    total_lessons = db.query(Lesson).count()
    completed_lessons = sum(1 for r in rows if r.completed)
    progress_percentage = (
        round(completed_lessons / total_lessons * 100) if total_lessons else 0
    )

    weak = get_weak_areas(db, current_user.id)

    return ProgressRead(
        user_id=current_user.id,
        total_lessons=total_lessons,
        completed_lessons=completed_lessons,
        progress_percentage=progress_percentage,
        gpa=_gpa(_transcript(db, current_user)),
        lessons=[
            LessonProgressRead(
                lesson_id=r.lesson_id,
                lesson_title=r.lesson.title if r.lesson else "Unknown",
                completed=r.completed,
                last_score=r.last_score,
                updated_at=r.updated_at,
            )
            for r in rows
        ],
        weak_areas=[WeakAreaRead.model_validate(w) for w in weak],
        required_reviews=review_items(weak),
    )


@router.post("/", response_model=LessonProgressRead)
def update_progress(
    body: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record progress on a lesson the learner can currently open."""
    lesson = db.get(Lesson, body.lesson_id)
    if lesson is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")

    decision = can_access_lesson(db, current_user.id, lesson.id)
    if not decision.accessible:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=decision.reason)

    prog = upsert_lesson_progress(
        db, current_user.id, lesson.id, body.last_score, body.completed
    )
    db.commit()
    db.refresh(prog)
    logger.info(
        "Progress on lesson %s by %s: completed=%s", lesson.id, current_user.id, prog.completed
    )
    return LessonProgressRead(
        lesson_id=prog.lesson_id,
        lesson_title=lesson.title,
        completed=prog.completed,
        last_score=prog.last_score,
        updated_at=prog.updated_at,
    )


@router.get("/weak-areas", response_model=WeakAreasRead)
def weak_areas(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return WeakAreasRead(
        weak_areas=[WeakAreaRead.model_validate(w) for w in get_weak_areas(db, current_user.id)],
        required_reviews=get_required_reviews(db, current_user.id),
    )


@router.get("/transcript", response_model=TranscriptRead)
def transcript(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Passed module exams, term exams and cumulative reviews with the overall GPA."""
    entries = _transcript(db, current_user)
    return TranscriptRead(
        entries=[TranscriptEntryRead.model_validate(e) for e in entries],
        gpa=_gpa(entries),
    )
