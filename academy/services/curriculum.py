"""Ordered, in-memory view of the curriculum.

Lessons get one explicit total order keyed by
(year order, term order, module order, lesson order), so "the previous
lesson" is a single index lookup instead of a chain of module/term/year
queries.  Built fresh from the database for every gate evaluation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from academy.db.models import Assessment, Lesson, Module, Term, Year
from academy.services.tiers import AssessmentTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YearNode:
    id: str
    title: str
    order: int


@dataclass(frozen=True)
class TermNode:
    id: str
    year_id: str
    title: str
    order: int
    requires_subscription: bool


@dataclass(frozen=True)
class ModuleNode:
    id: str
    term_id: str
    title: str
    order: int


@dataclass(frozen=True)
class LessonNode:
    id: str
    module_id: str
    title: str
    order: int


@dataclass
class CurriculumIndex:
    years: list[YearNode] = field(default_factory=list)
    terms: list[TermNode] = field(default_factory=list)
    modules: list[ModuleNode] = field(default_factory=list)
    lessons: list[LessonNode] = field(default_factory=list)
    # (tier, scope id) → assessment id; scope is the lesson for lesson checks
    assessments: dict[tuple[AssessmentTier, str], str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.years = sorted(self.years, key=lambda y: y.order)
        self.terms = sorted(self.terms, key=lambda t: t.order)
        self._years = {y.id: y for y in self.years}
        self._terms = {t.id: t for t in self.terms}
        self._modules = {m.id: m for m in self.modules}
        self.modules = sorted(
            self.modules,
            key=lambda m: (self._terms[m.term_id].order, m.order),
        )
        self.lessons = sorted(self.lessons, key=self._lesson_key)
        self._lessons = {les.id: les for les in self.lessons}
        self._lesson_pos = {les.id: i for i, les in enumerate(self.lessons)}

    def _lesson_key(self, lesson: LessonNode) -> tuple[int, int, int, int]:
        module = self._modules[lesson.module_id]
        term = self._terms[module.term_id]
        year = self._years[term.year_id]
        return (year.order, term.order, module.order, lesson.order)

    # ── lookups ──────────────────────────────────────────────────────────

    def year(self, year_id: Any) -> YearNode | None:
        return self._years.get(str(year_id))

    def term(self, term_id: Any) -> TermNode | None:
        return self._terms.get(str(term_id))

    def module(self, module_id: Any) -> ModuleNode | None:
        return self._modules.get(str(module_id))

    def lesson(self, lesson_id: Any) -> LessonNode | None:
        return self._lessons.get(str(lesson_id))

    def term_of_lesson(self, lesson_id: Any) -> TermNode | None:
        lesson = self.lesson(lesson_id)
        if lesson is None:
            return None
        return self._terms[self._modules[lesson.module_id].term_id]

    # ── ordering ─────────────────────────────────────────────────────────

    @property
    def first_lesson(self) -> LessonNode | None:
        return self.lessons[0] if self.lessons else None

    def previous_in_sequence(self, lesson_id: Any) -> str | None:
        """Id of the lesson directly before *lesson_id*, or None for the first."""
        pos = self._lesson_pos.get(str(lesson_id))
        if not pos:
            return None
        return self.lessons[pos - 1].id

    def modules_in_term(self, term_id: Any) -> list[ModuleNode]:
        return [m for m in self.modules if m.term_id == str(term_id)]

    def lessons_in_module(self, module_id: Any) -> list[LessonNode]:
        return [les for les in self.lessons if les.module_id == str(module_id)]

    def terms_in_year(self, year_id: Any) -> list[TermNode]:
        return [t for t in self.terms if t.year_id == str(year_id)]

    def previous_module(self, module_id: Any) -> ModuleNode | None:
        module = self.module(module_id)
        if module is None:
            return None
        siblings = self.modules_in_term(module.term_id)
        idx = siblings.index(module)
        return siblings[idx - 1] if idx > 0 else None

    def previous_term(self, term_id: Any) -> TermNode | None:
        term = self.term(term_id)
        if term is None:
            return None
        idx = self.terms.index(term)
        return self.terms[idx - 1] if idx > 0 else None

    def previous_year(self, year_id: Any) -> YearNode | None:
        year = self.year(year_id)
        if year is None:
            return None
        idx = self.years.index(year)
        return self.years[idx - 1] if idx > 0 else None

    def assessment_for(self, tier: AssessmentTier, scope_id: Any) -> str | None:
        return self.assessments.get((AssessmentTier(tier), str(scope_id)))


def _scope_of(assessment: Assessment) -> Any:
    if assessment.tier is AssessmentTier.LESSON_CHECK:
        return assessment.lesson_id
    return assessment.module_id or assessment.term_id or assessment.year_id


def load_curriculum(db: Session) -> CurriculumIndex:
    """Read the whole curriculum tree and its assessment map.

    When several assessments share a tier and scope, the oldest one gates
    progression and the rest are logged.
    """
    assessments: dict[tuple[AssessmentTier, str], str] = {}
    for a in db.query(Assessment).order_by(Assessment.created_at, Assessment.id).all():
        scope = _scope_of(a)
        if scope is None:
            continue
        key = (a.tier, str(scope))
        if key in assessments:
            logger.warning(
                "Assessment %s duplicates %s for %s %s; ignored",
                a.id, assessments[key], a.tier.value, scope,
            )
            continue
        assessments[key] = str(a.id)

    return CurriculumIndex(
        years=[YearNode(str(y.id), y.title, y.order) for y in db.query(Year).all()],
        terms=[
            TermNode(str(t.id), str(t.year_id), t.title, t.order, t.requires_subscription)
            for t in db.query(Term).all()
        ],
        modules=[
            ModuleNode(str(m.id), str(m.term_id), m.title, m.order)
            for m in db.query(Module).all()
        ],
        lessons=[
            LessonNode(str(les.id), str(les.module_id), les.title, les.order)
            for les in db.query(Lesson).all()
        ],
        assessments=assessments,
    )
