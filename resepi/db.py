"""Engine and session registry.

Request handlers use ``get_session()`` (thread-scoped, removed at teardown).
Scripts and batch jobs use ``get_new_session()`` so they never share an identity
map with a request.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from .models import Base

_engine: Engine | None = None
_SessionFactory: scoped_session[Session] | None = None


def _normalize_url(url: str) -> str:
    # Hosting providers hand out postgres:// URLs; SQLAlchemy wants an explicit psycopg v3 driver
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://") :]
    if url.startswith("postgresql://") and "+" not in url.split("://", 1)[1].split("@", 1)[0]:
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    return url


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # the dev server and the test client hand requests to other threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def _build(database_url: str) -> Engine:
    global _SessionFactory
    url = _normalize_url(database_url)
    engine = create_engine(url, future=True, echo=False, **_engine_options(url))
    _SessionFactory = scoped_session(sessionmaker(bind=engine, autoflush=False, autocommit=False))
    return engine


def init_engine(database_url: str, force: bool = False) -> Engine:
    """Create the global engine once; force=True swaps it (fresh test databases)."""
    global _engine
    if _engine is not None and not force:
        return _engine
    if _engine is not None:
        remove_session()
        _engine.dispose()
    _engine = _build(database_url)
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return _SessionFactory()


def remove_session() -> None:
    if _SessionFactory is not None:
        _SessionFactory.remove()


def get_new_session() -> Session:
    if _engine is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return sessionmaker(bind=_engine, autoflush=False, autocommit=False)()


def create_all() -> None:
    """Create every table from the models. Tests and DEV_CREATE_ALL only; deployments run Alembic."""
    if _engine is None:
        raise RuntimeError("Engine not initialized")
    Base.metadata.create_all(_engine)
