"""Progress / analytics schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from academy.services.tiers import AssessmentTier, GradeLetter


class WeakAreaRead(BaseModel):
    concept_tag: str
    error_count: int
    last_tested_at: datetime

    model_config = {"from_attributes": True}


class ReviewItem(BaseModel):
    """A required review; ``blocking`` marks concepts that hold back term advancement."""

    concept_tag: str
    error_count: int
    blocking: bool


class WeakAreasRead(BaseModel):
    weak_areas: list[WeakAreaRead] = []
    required_reviews: list[str] = []


class LessonProgressRead(BaseModel):
    lesson_id: uuid.UUID
    lesson_title: str
    completed: bool
    last_score: float | None = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProgressUpdate(BaseModel):
    """POST /api/progress: record progress on a lesson."""

    lesson_id: uuid.UUID
    completed: bool = False
    last_score: float | None = None


class ProgressRead(BaseModel):
    """Learner dashboard summary."""

    user_id: uuid.UUID
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    gpa: float | None = None
    lessons: list[LessonProgressRead] = []
    weak_areas: list[WeakAreaRead] = []
    required_reviews: list[ReviewItem] = []


class TranscriptEntryRead(BaseModel):
    assessment_id: uuid.UUID
    tier: AssessmentTier
    title: str
    year_id: uuid.UUID | None = None
    term_id: uuid.UUID | None = None
    module_id: uuid.UUID | None = None
    score: float
    grade: GradeLetter
    attempt_count: int
    first_attempted_at: datetime
    completed_at: datetime

    model_config = {"from_attributes": True}


class TranscriptRead(BaseModel):
    entries: list[TranscriptEntryRead] = []
    gpa: float | None = None
