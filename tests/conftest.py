"""Shared pytest fixtures for backend tests."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from academy.core.security import create_access_token
from academy.db.models import (
    Answer,
    Assessment,
    Lesson,
    Module,
    Question,
    QuestionTypeEnum,
    Term,
    User,
    Year,
)
from academy.db.session import Base, get_db
from academy.main import app
from academy.services.tiers import AssessmentTier

# Fixed "current time" for deterministic retry and subscription checks
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory database per test; the submission service commits."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Use StaticPool to keep connection alive
        echo=False,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(scope="function")
def client(db: Session):
    """FastAPI test client with overridden DB dependency."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def student(db: Session) -> User:
    user = User(email="student@example.com", full_name="Student User")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(student: User) -> dict[str, str]:
    token = create_access_token({"sub": str(student.id)})
    return {"Authorization": f"Bearer {token}"}


# ── Curriculum builder ────────────────────────────────────────────────────


def add_assessment(
    db: Session,
    tier: AssessmentTier,
    title: str,
    concepts: list[str],
    count: int,
    **scope,
) -> Assessment:
    """Create an assessment with *count* four-option questions; option 1 is correct."""
    assessment = Assessment(tier=tier, title=title, **scope)
    db.add(assessment)
    db.flush()
    for position in range(1, count + 1):
        question = Question(
            assessment_id=assessment.id,
            text=f"{title} Q{position}",
            question_type=QuestionTypeEnum.CONCEPTUAL,
            concept_tag=concepts[(position - 1) % len(concepts)],
            position=position,
        )
        db.add(question)
        db.flush()
        for option in range(1, 5):
            db.add(
                Answer(
                    question_id=question.id,
                    text=f"Option {option}",
                    is_correct=option == 1,
                    explanation=None if option == 1 else f"Option {option} is a distractor.",
                    position=option,
                )
            )
    db.flush()
    return assessment


def answer_sheet(assessment: Assessment, correct: int) -> dict[str, str]:
    """Answers for *assessment*: the first *correct* questions right, the rest wrong."""
    sheet: dict[str, str] = {}
    for index, question in enumerate(sorted(assessment.questions, key=lambda q: q.position)):
        options = sorted(question.answers, key=lambda a: a.position)
        pick = options[0] if index < correct else options[1]
        sheet[str(question.id)] = str(pick.id)
    return sheet


@pytest.fixture
def sheet():
    return answer_sheet


@pytest.fixture
def curriculum(db: Session) -> SimpleNamespace:
    """Two years of content:

    Year 1
      Term 1 (free)   M1: L1, L2    M2: L3
      Term 2 (paid)   M3: L4
    Year 2
      Term 3 (free)   M4: L5

    Each lesson has a 6-question check; every module, term and year 1 have
    their exams.
    """
    y1 = Year(title="Year 1", order=1)
    y2 = Year(title="Year 2", order=2)
    db.add_all([y1, y2])
    db.flush()

    t1 = Term(year_id=y1.id, title="Term 1", order=1, term_number=1, requires_subscription=False)
    t2 = Term(year_id=y1.id, title="Term 2", order=2, term_number=2, requires_subscription=True)
    t3 = Term(year_id=y2.id, title="Term 3", order=3, term_number=1, requires_subscription=False)
    db.add_all([t1, t2, t3])
    db.flush()

    m1 = Module(term_id=t1.id, title="Module 1", order=1)
    m2 = Module(term_id=t1.id, title="Module 2", order=2)
    m3 = Module(term_id=t2.id, title="Module 3", order=1)
    m4 = Module(term_id=t3.id, title="Module 4", order=1)
    db.add_all([m1, m2, m3, m4])
    db.flush()

    l1 = Lesson(module_id=m1.id, title="Lesson 1", order=1)
    l2 = Lesson(module_id=m1.id, title="Lesson 2", order=2)
    l3 = Lesson(module_id=m2.id, title="Lesson 3", order=1)
    l4 = Lesson(module_id=m3.id, title="Lesson 4", order=1)
    l5 = Lesson(module_id=m4.id, title="Lesson 5", order=1)
    lessons = [l1, l2, l3, l4, l5]
    db.add_all(lessons)
    db.flush()

    concepts = {
        l1.id: ["identification", "place-value"],
        l2.id: ["rounding", "estimation"],
        l3.id: ["units", "conversion"],
        l4.id: ["centers", "radius"],
        l5.id: ["ratios", "fractions"],
    }
    checks = [
        add_assessment(
            db, AssessmentTier.LESSON_CHECK, f"{les.title} check", concepts[les.id], 6,
            lesson_id=les.id,
        )
        for les in lessons
    ]
    module_exams = [
        add_assessment(db, AssessmentTier.MODULE_EXAM, f"{m.title} exam", ["modules"], 4, module_id=m.id)
        for m in (m1, m2, m3, m4)
    ]
    term_exams = [
        add_assessment(db, AssessmentTier.TERM_EXAM, f"{t.title} final", ["terms"], 4, term_id=t.id)
        for t in (t1, t2, t3)
    ]
    review = add_assessment(
        db, AssessmentTier.CUMULATIVE_REVIEW, "Year 1 review", ["review"], 4, year_id=y1.id
    )
    db.commit()

    return SimpleNamespace(
        years=[y1, y2],
        terms=[t1, t2, t3],
        modules=[m1, m2, m3, m4],
        lessons=lessons,
        checks=checks,
        module_exams=module_exams,
        term_exams=term_exams,
        review=review,
    )


@pytest.fixture
def now() -> datetime:
    return NOW
