"""Grading for single-correct-answer multiple choice assessments.

A submission is scored against the already-loaded question bank:

  - a question missing from the correct-answer lookup is skipped entirely
    (no feedback, not part of the total), so one malformed question never
    blocks an attempt
  - an unanswered question is incorrect and carries no explanation
  - score = round(correct / total × 100, 2); an empty assessment scores 0

Everything here is pure: no storage access, no clock reads except through
the retry evaluator's injectable ``now``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from academy.schemas.assessment import (
    AssessmentResult,
    ConceptMiss,
    GradeResult,
    QuestionFeedback,
)
from academy.services.retry import retry_eligibility
from academy.services.tiers import (
    AssessmentTier,
    TierPolicy,
    calculate_grade,
    get_pass_threshold,
)


def _key(value: Any) -> str:
    return "" if value is None else str(value)


def compute_score(correct_count: int, total_questions: int) -> float:
    if total_questions <= 0:
        return 0.0
    return round(correct_count / total_questions * 100, 2)


def grade(
    questions: Sequence[Any],
    submission: Mapping[Any, Any],
    correct_by_question: Mapping[Any, Any],
    explanation_by_answer: Mapping[Any, str | None],
    threshold: float | None = None,
) -> GradeResult:
    """Score *submission* against *questions*.

    Args:
        questions: ordered question objects exposing ``id`` and ``concept_tag``
        submission: question id → chosen answer id
        correct_by_question: question id → id of its single correct answer
        explanation_by_answer: answer id → explanation text (or None)
        threshold: pass mark; defaults to the lesson check threshold

    Ids may be strings or UUIDs; they are compared by their string form.
    """
    chosen = {_key(q): _key(a) for q, a in submission.items()}
    correct_ids = {_key(q): _key(a) for q, a in correct_by_question.items()}
    explanations = {_key(a): text for a, text in explanation_by_answer.items()}

    correct_count = 0
    feedback: list[QuestionFeedback] = []

    for question in questions:
        qid = _key(question.id)
        correct_answer_id = correct_ids.get(qid)
        if not correct_answer_id:
            continue

        selected = chosen.get(qid, "")
        is_correct = bool(selected) and selected == correct_answer_id
        if is_correct:
            correct_count += 1

        explanation = None
        if not is_correct and selected:
            explanation = explanations.get(selected) or None

        feedback.append(
            QuestionFeedback(
                question_id=qid,
                correct=is_correct,
                selected_answer_id=selected,
                correct_answer_id=correct_answer_id,
                explanation=explanation,
                concept_tag=question.concept_tag,
            )
        )

    total_questions = len(feedback)
    score = compute_score(correct_count, total_questions)
    if threshold is None:
        threshold = get_pass_threshold(AssessmentTier.LESSON_CHECK)

    return GradeResult(
        score=score,
        grade=calculate_grade(score),
        passed=score >= threshold,
        total_questions=total_questions,
        correct_count=correct_count,
        feedback=feedback,
    )


def extract_incorrect_concepts(result: GradeResult) -> list[ConceptMiss]:
    """Every incorrect, tag-bearing question of *result*, in question order."""
    return [
        ConceptMiss(concept_tag=f.concept_tag, question_id=f.question_id)
        for f in result.feedback
        if not f.correct and f.concept_tag
    ]


def weak_concepts(result: GradeResult) -> list[str]:
    """Distinct missed concept tags, first-seen order."""
    return list(dict.fromkeys(m.concept_tag for m in extract_incorrect_concepts(result)))


def assemble_assessment_result(
    graded: GradeResult,
    tier: AssessmentTier,
    attempts: Iterable[Any],
    now: datetime | None = None,
    policy: TierPolicy | None = None,
) -> AssessmentResult:
    """Attach tier verdict and retry eligibility to an existing grade."""
    tier = AssessmentTier(tier)
    policy = policy or tier.policy
    passed = graded.score >= policy.pass_threshold
    eligibility = retry_eligibility(tier, attempts, now=now, policy=policy)

    return AssessmentResult(
        score=graded.score,
        grade=graded.grade,
        passed=passed,
        total_questions=graded.total_questions,
        correct_count=graded.correct_count,
        feedback=graded.feedback,
        tier=tier,
        weak_concepts=weak_concepts(graded),
        can_retry=not passed and eligibility.eligible,
        next_retry_available_at=eligibility.next_eligible_at,
    )


def grade_assessment(
    questions: Sequence[Any],
    submission: Mapping[Any, Any],
    correct_by_question: Mapping[Any, Any],
    explanation_by_answer: Mapping[Any, str | None],
    tier: AssessmentTier,
    prior_attempts: Iterable[Any],
    now: datetime | None = None,
    policy: TierPolicy | None = None,
) -> AssessmentResult:
    """Grade a submission for any tier and report letter grade, weak concepts
    and whether another attempt is currently allowed."""
    tier = AssessmentTier(tier)
    policy = policy or tier.policy
    graded = grade(
        questions,
        submission,
        correct_by_question,
        explanation_by_answer,
        threshold=policy.pass_threshold,
    )
    return assemble_assessment_result(graded, tier, prior_attempts, now=now, policy=policy)
