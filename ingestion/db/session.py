"""Session helpers for the ratings database."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from ingestion.settings import Settings, get_settings

from .models import Base

_ENGINE: Engine | None = None
_SESSIONMAKER: sessionmaker[Session] | None = None
_CURRENT_DSN: str | None = None


def _make_engine(dsn: str) -> Engine:
    url = make_url(dsn)
    connect_args: dict = {}
    if url.get_backend_name() == "sqlite":
        # API 스레드풀과 sync 스레드가 같은 엔진을 공유한다.
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(dsn, future=True, connect_args=connect_args, pool_pre_ping=True)


def get_engine(settings: Settings | None = None) -> Engine:
    """Return a memoized SQLAlchemy engine."""
    global _ENGINE, _SESSIONMAKER, _CURRENT_DSN

    config = settings or get_settings()
    if _ENGINE is None or _CURRENT_DSN != config.database_url:
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = _make_engine(config.database_url)
        _SESSIONMAKER = sessionmaker(
            bind=_ENGINE,
            expire_on_commit=False,
            autoflush=False,
            future=True,
        )
        _CURRENT_DSN = config.database_url
    return _ENGINE


def get_sessionmaker(settings: Settings | None = None) -> sessionmaker[Session]:
    """Return a memoized sessionmaker."""
    get_engine(settings)
    assert _SESSIONMAKER is not None  # for mypy
    return _SESSIONMAKER


def init_db(settings: Settings | None = None) -> None:
    """Create tables for local runs/tests (idempotent)."""
    Base.metadata.create_all(bind=get_engine(settings))


@contextmanager
def session_scope(
    settings: Settings | None = None,
    *,
    factory: sessionmaker[Session] | None = None,
) -> Iterator[Session]:
    """Provide a transactional scope for DB operations."""
    session = (factory or get_sessionmaker(settings))()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
