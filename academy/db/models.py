"""SQLAlchemy ORM models for the academy platform.

Tables
------
- users               – learner profiles (accounts live in the auth service)
- subscriptions       – billing state mirrored from the payment provider
- years / terms       – institutional hierarchy
- modules / lessons   – sequential curriculum content
- assessments         – lesson checks, module exams, term exams, cumulative reviews
- questions / answers – single-correct-answer multiple choice bank
- attempts            – graded submissions (immutable)
- progress            – per‑learner per‑lesson completion
- weak_areas          – per‑learner per‑concept miss ledger
- transcript_entries  – terminal GPA rows, one per passed higher-tier assessment
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.core.clock import utcnow
from academy.db.session import Base
from academy.services.tiers import AssessmentTier, GradeLetter


# ── helpers ───────────────────────────────────────────────────────────────────


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class QuestionTypeEnum(str, enum.Enum):
    CONCEPTUAL = "conceptual"
    TRAP = "trap"
    CONTRAST = "contrast"
    DEFINITION = "definition"


class SubscriptionStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    TRIALING = "trialing"
    INCOMPLETE = "incomplete"


# ── Users ─────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    subscriptions: Mapped[list["Subscription"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    attempts: Mapped[list["Attempt"]] = relationship(back_populates="user")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    status: Mapped[SubscriptionStatusEnum] = mapped_column(
        Enum(SubscriptionStatusEnum, name="subscription_status_enum"),
        default=SubscriptionStatusEnum.INCOMPLETE,
    )
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="subscriptions")


# ── Curriculum hierarchy ──────────────────────────────────────────────────────


class Year(Base):
    __tablename__ = "years"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    title: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column(Integer, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    terms: Mapped[list["Term"]] = relationship(
        back_populates="year", order_by="Term.order", cascade="all, delete-orphan"
    )


class Term(Base):
    __tablename__ = "terms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    year_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("years.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column(Integer, unique=True)  # global across the program
    term_number: Mapped[int] = mapped_column(Integer)  # within its year
    requires_subscription: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    year: Mapped["Year"] = relationship(back_populates="terms")
    modules: Mapped[list["Module"]] = relationship(
        back_populates="term", order_by="Module.order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("year_id", "term_number", name="uq_term_year_number"),
    )


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    term_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("terms.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    term: Mapped["Term"] = relationship(back_populates="modules")
    lessons: Mapped[list["Lesson"]] = relationship(
        back_populates="module", order_by="Lesson.order", cascade="all, delete-orphan"
    )

    __table_args__ = (UniqueConstraint("term_id", "order", name="uq_module_term_order"),)


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(300))
    content: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    order: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    module: Mapped["Module"] = relationship(back_populates="lessons")

    __table_args__ = (UniqueConstraint("module_id", "order", name="uq_lesson_module_order"),)


# ── Assessments ───────────────────────────────────────────────────────────────


class Assessment(Base):
    """One assessment of any tier.

    Scope: ``lesson_id`` for lesson checks, otherwise exactly one of
    ``module_id`` / ``term_id`` / ``year_id``.  The nullable policy columns
    override the tier defaults when set.
    """

    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tier: Mapped[AssessmentTier] = mapped_column(
        Enum(AssessmentTier, name="assessment_tier_enum"), index=True
    )
    title: Mapped[str] = mapped_column(String(300))
    lesson_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lessons.id"), nullable=True, unique=True
    )
    module_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=True
    )
    term_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("terms.id"), nullable=True
    )
    year_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("years.id"), nullable=True
    )
    pass_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_attempts_per_period: Mapped[int | None] = mapped_column(Integer, nullable=True)
    period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cooldown_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    questions: Mapped[list["Question"]] = relationship(
        back_populates="assessment",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assessments.id"), index=True
    )
    text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[QuestionTypeEnum] = mapped_column(
        Enum(QuestionTypeEnum, name="question_type_enum"),
        default=QuestionTypeEnum.CONCEPTUAL,
    )
    concept_tag: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    source_lesson_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lessons.id"), nullable=True
    )
    position: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    assessment: Mapped["Assessment"] = relationship(back_populates="questions")
    answers: Mapped[list["Answer"]] = relationship(
        back_populates="question",
        order_by="Answer.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("assessment_id", "position", name="uq_question_assessment_position"),
    )


class Answer(Base):
    __tablename__ = "answers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("questions.id"), index=True
    )
    text: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    question: Mapped["Question"] = relationship(back_populates="answers")


# ── Attempts ──────────────────────────────────────────────────────────────────


class Attempt(Base):
    """A graded submission.  Never updated; a retry creates a new row."""

    __tablename__ = "attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assessments.id"), index=True
    )
    score: Mapped[float] = mapped_column(Float, default=0.0)
    grade: Mapped[GradeLetter] = mapped_column(Enum(GradeLetter, name="grade_letter_enum"))
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    attempt_number: Mapped[int] = mapped_column(Integer, default=1)
    answers_given: Mapped[list] = mapped_column(JSON, default=list)
    feedback_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="attempts")
    assessment: Mapped["Assessment"] = relationship("Assessment")

    __table_args__ = (
        UniqueConstraint("user_id", "assessment_id", "attempt_number", name="uq_attempt_number"),
    )


# ── Progress (per‑learner, per‑lesson completion) ────────────────────────────


class Progress(Base):
    __tablename__ = "progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lessons.id")
    )
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    last_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    lesson: Mapped["Lesson"] = relationship("Lesson")

    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_user_lesson_progress"),
    )


# ── Weak areas (concept miss ledger) ──────────────────────────────────────────


class WeakArea(Base):
    __tablename__ = "weak_areas"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    concept_tag: Mapped[str] = mapped_column(String(200))
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    last_tested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "concept_tag", name="uq_user_concept"),
    )


# ── Transcript ────────────────────────────────────────────────────────────────


class TranscriptEntry(Base):
    """Terminal GPA row for one passed module exam, term exam or cumulative review."""

    __tablename__ = "transcript_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assessments.id")
    )
    tier: Mapped[AssessmentTier] = mapped_column(
        Enum(AssessmentTier, name="assessment_tier_enum", create_constraint=False)
    )
    title: Mapped[str] = mapped_column(String(300))
    year_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("years.id"), nullable=True, index=True
    )
    term_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("terms.id"), nullable=True
    )
    module_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=True
    )
    score: Mapped[float] = mapped_column(Float)
    grade: Mapped[GradeLetter] = mapped_column(
        Enum(GradeLetter, name="grade_letter_enum", create_constraint=False)
    )
    passed: Mapped[bool] = mapped_column(Boolean, default=True)
    attempt_count: Mapped[int] = mapped_column(Integer, default=1)
    first_attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "assessment_id", name="uq_transcript_user_assessment"),
    )
