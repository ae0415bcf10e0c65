"""Assessment, grading and retry schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from academy.services.tiers import AssessmentTier, GradeLetter


class QuestionFeedback(BaseModel):
    """Per-question outcome of a graded submission."""

    question_id: str
    correct: bool
    selected_answer_id: str
    correct_answer_id: str
    explanation: str | None = None
    concept_tag: str | None = None


class GradeResult(BaseModel):
    score: float
    grade: GradeLetter
    passed: bool
    total_questions: int
    correct_count: int
    feedback: list[QuestionFeedback] = []


class AssessmentResult(GradeResult):
    """Grade plus weak concepts and retry eligibility for one tier."""

    tier: AssessmentTier
    weak_concepts: list[str] = []
    can_retry: bool
    next_retry_available_at: datetime | None = None


class ConceptMiss(BaseModel):
    concept_tag: str
    question_id: str


class RetryEligibility(BaseModel):
    eligible: bool
    next_eligible_at: datetime | None = None


class RetryAction(BaseModel):
    """Advisory next step after a failed attempt."""

    type: str  # retry | revisit_lesson | review_required | module_review | term_review
    message: str
    cooldown_hours: int | None = None
    concepts_to_review: list[str] = []


# ── API payloads ──────────────────────────────────────────────────────────────


class SubmittedAnswer(BaseModel):
    question_id: str
    answer_id: str


class AssessmentSubmit(BaseModel):
    """POST /api/assessments/{id}/submit: answers for one assessment."""

    answers: list[SubmittedAnswer] = Field(min_length=1)


class SubmissionRead(BaseModel):
    """Result returned after a submission has been graded and stored."""

    attempt_id: uuid.UUID
    attempt_number: int
    result: AssessmentResult
    retry_action: RetryAction | None = None


class AnswerOptionRead(BaseModel):
    id: uuid.UUID
    text: str
    position: int

    model_config = {"from_attributes": True}


class QuestionRead(BaseModel):
    """A question as shown to a student (correctness withheld)."""

    id: uuid.UUID
    text: str
    question_type: str
    concept_tag: str | None = None
    position: int
    answers: list[AnswerOptionRead] = []


class AssessmentRead(BaseModel):
    id: uuid.UUID
    tier: AssessmentTier
    title: str
    lesson_id: uuid.UUID | None = None
    module_id: uuid.UUID | None = None
    term_id: uuid.UUID | None = None
    year_id: uuid.UUID | None = None
    pass_threshold: float
    content_warning: str | None = None
    questions: list[QuestionRead] = []


class AttemptRead(BaseModel):
    id: uuid.UUID
    assessment_id: uuid.UUID
    score: float
    grade: GradeLetter
    passed: bool
    attempt_number: int
    answers_given: list[dict] = []
    feedback_summary: dict | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
