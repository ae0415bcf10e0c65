"""API route package — imports all routers for main.py."""

from academy.api.health import router as health_router  # noqa: F401
from academy.api.curriculum import router as curriculum_router  # noqa: F401
from academy.api.assessments import router as assessments_router  # noqa: F401
from academy.api.progress import router as progress_router  # noqa: F401
