"""One-time DB setup: create tables and seed a sample curriculum."""
from academy.core.security import create_access_token
from academy.db.session import Base, get_engine, get_session_factory
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
from academy.services.tiers import AssessmentTier

# Year → terms → modules → lessons; each lesson lists the concepts it teaches.
CURRICULUM = [
    {
        "title": "Year 1: Foundations",
        "terms": [
            {
                "title": "Term 1: Numbers and Measurement",
                "requires_subscription": False,
                "modules": [
                    {
                        "title": "Place Value",
                        "lessons": [
                            ("Digits and place", ["place-value", "digits"]),
                            ("Rounding", ["rounding", "place-value"]),
                        ],
                    },
                    {
                        "title": "Units",
                        "lessons": [
                            ("Length and mass", ["units", "conversion"]),
                            ("Time", ["time", "conversion"]),
                        ],
                    },
                ],
            },
            {
                "title": "Term 2: Geometry",
                "requires_subscription": True,
                "modules": [
                    {
                        "title": "Shapes",
                        "lessons": [
                            ("Polygons", ["polygons", "angles"]),
                            ("Circles", ["centers", "radius"]),
                        ],
                    },
                    {
                        "title": "Area and Perimeter",
                        "lessons": [
                            ("Perimeter", ["perimeter", "units"]),
                            ("Area", ["area", "units"]),
                        ],
                    },
                ],
            },
        ],
    },
]

_TYPES = list(QuestionTypeEnum)


def add_questions(db, assessment: Assessment, concepts: list[str], count: int) -> None:
    """Attach *count* four-option questions cycling through *concepts*."""
    for position in range(1, count + 1):
        tag = concepts[(position - 1) % len(concepts)]
        question = Question(
            assessment_id=assessment.id,
            text=f"[{tag}] Question {position} of {assessment.title}",
            question_type=_TYPES[(position - 1) % len(_TYPES)],
            concept_tag=tag,
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
                    explanation=None if option == 1 else f"Revisit the lesson on {tag}.",
                    position=option,
                )
            )


def new_assessment(db, tier: AssessmentTier, title: str, concepts: list[str], **scope) -> Assessment:
    assessment = Assessment(tier=tier, title=title, **scope)
    db.add(assessment)
    db.flush()
    add_questions(db, assessment, concepts, tier.policy.min_questions)
    return assessment


# 1. Create all tables
engine = get_engine()
Base.metadata.create_all(bind=engine)
print("✅ All tables created")

session_factory = get_session_factory()
with session_factory() as db:
    # 2. Curriculum
    if db.query(Year).count() == 0:
        term_order = 0
        for year_order, year_def in enumerate(CURRICULUM, start=1):
            year = Year(title=year_def["title"], order=year_order)
            db.add(year)
            db.flush()
            year_concepts: list[str] = []

            for term_number, term_def in enumerate(year_def["terms"], start=1):
                term_order += 1
                term = Term(
                    year_id=year.id,
                    title=term_def["title"],
                    order=term_order,
                    term_number=term_number,
                    requires_subscription=term_def["requires_subscription"],
                )
                db.add(term)
                db.flush()
                term_concepts: list[str] = []

                for module_order, module_def in enumerate(term_def["modules"], start=1):
                    module = Module(term_id=term.id, title=module_def["title"], order=module_order)
                    db.add(module)
                    db.flush()
                    module_concepts: list[str] = []

                    for lesson_order, (title, concepts) in enumerate(module_def["lessons"], start=1):
                        lesson = Lesson(
                            module_id=module.id,
                            title=title,
                            order=lesson_order,
                            content={"sections": [f"Introduction to {c}" for c in concepts]},
                        )
                        db.add(lesson)
                        db.flush()
                        new_assessment(
                            db, AssessmentTier.LESSON_CHECK, f"{title} check", concepts,
                            lesson_id=lesson.id,
                        )
                        module_concepts.extend(c for c in concepts if c not in module_concepts)

                    new_assessment(
                        db, AssessmentTier.MODULE_EXAM, f"{module.title} exam", module_concepts,
                        module_id=module.id,
                    )
                    term_concepts.extend(c for c in module_concepts if c not in term_concepts)

                new_assessment(
                    db, AssessmentTier.TERM_EXAM, f"{term.title} final", term_concepts,
                    term_id=term.id,
                )
                year_concepts.extend(c for c in term_concepts if c not in year_concepts)

            new_assessment(
                db, AssessmentTier.CUMULATIVE_REVIEW, f"{year.title} review", year_concepts,
                year_id=year.id,
            )
        db.commit()
        print("✅ Seeded sample curriculum")
    else:
        print("  Curriculum already exists")

    # 3. Test student user
    student = db.query(User).filter(User.email == "student@example.com").first()
    if not student:
        student = User(email="student@example.com", full_name="Student User")
        db.add(student)
        db.commit()
        db.refresh(student)
        print("✅ Created student: student@example.com")
    else:
        print("  Student user already exists")

    token = create_access_token({"sub": str(student.id)})

print("\n🎉 Database is ready to use!")
print(f"   Student token: {token}")
