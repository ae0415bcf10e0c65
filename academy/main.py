"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from academy.config import settings
from academy.api import (
    health_router,
    curriculum_router,
    assessments_router,
    progress_router,
)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Academy backend starting (env=%s)", settings.ENV)
    yield
    logger.info("Academy backend shut down")


app = FastAPI(
    title="Academy API",
    description="Assessment and progression engine for structured courses",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(curriculum_router, prefix="/api/curriculum", tags=["Curriculum"])
app.include_router(assessments_router, prefix="/api/assessments", tags=["Assessments"])
app.include_router(progress_router, prefix="/api/progress", tags=["Progress"])


@app.get("/")
async def root():
    return {
        "name": "Academy API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
