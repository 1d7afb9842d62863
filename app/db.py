"""Database engine, session factory and FastAPI dependency."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine.url import URL
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings

Base = declarative_base()


def _engine_kwargs(url: URL) -> Dict[str, Any]:
    settings = get_settings()
    if url.get_backend_name() == "sqlite":
        # In-memory SQLite is shared across threads (tests, local runs).
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "connect_args": {"application_name": settings.app_name},
    }


def create_db_engine():
    url = get_settings().database_url_obj
    return create_engine(url, future=True, **_engine_kwargs(url))


engine = create_db_engine()
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
)


def get_db() -> Iterator[Session]:
    """Yield a session scoped to the request lifecycle."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(session_factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Session for code running outside a request (tasks, hub, sweeper)."""
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
