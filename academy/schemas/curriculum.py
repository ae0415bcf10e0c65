"""Curriculum and access schemas."""

import uuid

from pydantic import BaseModel


class AccessDecision(BaseModel):
    """Outcome of an access check; ``reason`` is set whenever access is denied."""

    accessible: bool
    reason: str | None = None


class YearRead(BaseModel):
    id: uuid.UUID
    title: str
    order: int
    description: str | None = None
    term_count: int = 0
    accessible: bool
    reason: str | None = None


class TermRead(BaseModel):
    id: uuid.UUID
    year_id: uuid.UUID
    title: str
    order: int
    term_number: int
    requires_subscription: bool
    accessible: bool
    reason: str | None = None


class ModuleRead(BaseModel):
    id: uuid.UUID
    term_id: uuid.UUID
    title: str
    order: int
    lesson_count: int = 0
    locked: bool
    completed: bool
    exam_passed: bool
    reason: str | None = None


class LessonRead(BaseModel):
    id: uuid.UUID
    module_id: uuid.UUID
    title: str
    order: int
    quiz_id: uuid.UUID | None = None
    locked: bool
    completed: bool
    reason: str | None = None
