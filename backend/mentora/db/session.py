"""Engine and session helpers for the database-backed key-value store.

One engine is kept per process. It is rebuilt when the configured
``MENTORA_DATABASE_URL`` changes, so tests can point at a fresh sqlite file
after clearing the settings cache.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import RLock
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

logger = logging.getLogger(__name__)

_lock = RLock()
_engine: Optional[Engine] = None
_engine_url: Optional[str] = None
_session_factory: Optional[sessionmaker[Session]] = None


def _engine_options(database_url: str, echo: bool) -> dict[str, object]:
    options: dict[str, object] = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # An in-memory database only lives as long as its one connection.
            options["poolclass"] = StaticPool
    return options


def get_engine() -> Engine:
    global _engine, _engine_url, _session_factory
    settings = get_settings()
    database_url = settings.database_url
    if not database_url:
        raise RuntimeError("MENTORA_DATABASE_URL must be configured to use database persistence.")

    with _lock:
        if _engine is not None and _engine_url == database_url:
            return _engine
        if _engine is not None:
            logger.info("Database URL changed; rebuilding engine")
            _engine.dispose()
        _engine = create_engine(database_url, **_engine_options(database_url, settings.database_echo))
        _engine_url = database_url
        _session_factory = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        return _engine


def get_session_factory() -> sessionmaker[Session]:
    get_engine()
    assert _session_factory is not None
    return _session_factory


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    """Yield a session, committing on success and rolling back on error."""
    session = get_session_factory()()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    global _engine, _engine_url, _session_factory
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _engine_url = None
        _session_factory = None


__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
