"""Pydantic schemas — re‑exported for convenience."""

from academy.schemas.assessment import (  # noqa: F401
    AssessmentRead,
    AssessmentResult,
    AssessmentSubmit,
    AttemptRead,
    GradeResult,
    QuestionFeedback,
    RetryAction,
    RetryEligibility,
    SubmissionRead,
)
from academy.schemas.curriculum import (  # noqa: F401
    AccessDecision,
    LessonRead,
    ModuleRead,
    TermRead,
    YearRead,
)
from academy.schemas.progress import (  # noqa: F401
    ProgressRead,
    ProgressUpdate,
    ReviewItem,
    TranscriptRead,
    WeakAreaRead,
    WeakAreasRead,
)
