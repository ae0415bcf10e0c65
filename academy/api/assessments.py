"""Assessment routes: fetch, preview-grade, submit, eligibility, history."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from academy.api.deps import get_current_user
from academy.db.models import User
from academy.db.session import get_db
from academy.schemas.assessment import (
    AnswerOptionRead,
    AssessmentRead,
    AssessmentResult,
    AssessmentSubmit,
    AttemptRead,
    QuestionRead,
    RetryEligibility,
    SubmissionRead,
)
from academy.services.retry import retry_eligibility
from academy.services.submission import (
    AssessmentNotFound,
    ConflictingUpdate,
    DuplicateSubmission,
    RetryNotAllowed,
    assessment_policy,
    evaluate_assessment,
    get_attempts,
    load_question_bank,
    question_count_warning,
    submit_assessment,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _not_found(assessment_id: uuid.UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Assessment {assessment_id} not found",
    )


def _answer_map(body: AssessmentSubmit) -> dict[str, str]:
    return {a.question_id: a.answer_id for a in body.answers}


@router.get("/{assessment_id}", response_model=AssessmentRead)
def get_assessment(
    assessment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return an assessment with its questions; correct answers are not exposed."""
    try:
        bank = load_question_bank(db, assessment_id)
    except AssessmentNotFound:
        raise _not_found(assessment_id)

    a = bank.assessment
    return AssessmentRead(
        id=a.id,
        tier=a.tier,
        title=a.title,
        lesson_id=a.lesson_id,
        module_id=a.module_id,
        term_id=a.term_id,
        year_id=a.year_id,
        pass_threshold=assessment_policy(a).pass_threshold,
        content_warning=question_count_warning(bank),
        questions=[
            QuestionRead(
                id=q.id,
                text=q.text,
                question_type=q.question_type.value,
                concept_tag=q.concept_tag,
                position=q.position,
                answers=[
                    AnswerOptionRead.model_validate(ans)
                    for ans in sorted(q.answers, key=lambda x: x.position)
                ],
            )
            for q in bank.questions
        ],
    )


@router.post("/{assessment_id}/evaluate", response_model=AssessmentResult)
def evaluate(
    assessment_id: uuid.UUID,
    body: AssessmentSubmit,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Grade answers without recording an attempt."""
    try:
        return evaluate_assessment(db, current_user.id, assessment_id, _answer_map(body))
    except AssessmentNotFound:
        raise _not_found(assessment_id)


@router.post(
    "/{assessment_id}/submit",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def submit(
    assessment_id: uuid.UUID,
    body: AssessmentSubmit,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Submit answers and receive graded results.

    This endpoint:
    1. Refuses the attempt if the retry policy does not allow it yet
    2. Grades and stores the attempt
    3. Updates lesson progress or the transcript, and the weak-concept ledger
    """
    try:
        outcome = submit_assessment(db, current_user.id, assessment_id, _answer_map(body))
    except AssessmentNotFound:
        raise _not_found(assessment_id)
    except RetryNotAllowed as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": str(exc),
                "next_eligible_at": (
                    exc.next_eligible_at.isoformat() if exc.next_eligible_at else None
                ),
            },
        )
    except (DuplicateSubmission, ConflictingUpdate) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return SubmissionRead(
        attempt_id=outcome.attempt.id,
        attempt_number=outcome.attempt.attempt_number,
        result=outcome.result,
        retry_action=outcome.retry_action,
    )


@router.get("/{assessment_id}/eligibility", response_model=RetryEligibility)
def get_eligibility(
    assessment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        bank = load_question_bank(db, assessment_id)
    except AssessmentNotFound:
        raise _not_found(assessment_id)
    return retry_eligibility(
        bank.assessment.tier,
        get_attempts(db, current_user.id, assessment_id),
        policy=assessment_policy(bank.assessment),
    )


@router.get("/{assessment_id}/attempts", response_model=list[AttemptRead])
def list_attempts(
    assessment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The current learner's attempts on this assessment, oldest first."""
    try:
        load_question_bank(db, assessment_id)
    except AssessmentNotFound:
        raise _not_found(assessment_id)
    return get_attempts(db, current_user.id, assessment_id)
