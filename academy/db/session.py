"""SQLAlchemy engine & session factory."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from academy.config import settings

# Created on first use so importing the models never opens a connection
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine for ``settings.DATABASE_URL``."""
    global _engine
    if _engine is None:
        kwargs: dict = {"echo": settings.DATABASE_ECHO}
        if settings.DATABASE_URL.startswith("sqlite"):
            # e.g. sqlite:///./academy.db for local development
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_pre_ping"] = True
        _engine = create_engine(settings.DATABASE_URL, **kwargs)
    return _engine


def get_session_factory() -> sessionmaker:  # type: ignore[type-arg]
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _SessionLocal


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def get_db() -> Session:  # type: ignore[misc]
    """FastAPI dependency — yields a DB session and closes it after the request."""
    db = get_session_factory()()
    try:
        yield db  # type: ignore[misc]
    finally:
        db.close()
