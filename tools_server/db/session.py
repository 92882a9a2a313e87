"""Engine/session helpers for the SQL datastore."""
from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from tools_server.core.config import get_settings

Base = declarative_base()

SUPPORTED_DIALECTS = {
    "postgres": "postgresql",
    "mysql": "mysql",
    "sqlite": "sqlite",
}


class DatastoreError(Exception):
    """Raised when the configured datastore cannot be created."""


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


@lru_cache
def get_engine():
    settings = get_settings()
    url = (settings.database_url or "").strip()
    if not url:
        raise DatastoreError("datastore url must be configured (datastore.url or DATABASE_URL)")
    return create_engine(url, future=True, **_engine_kwargs(url))


@lru_cache
def _get_sessionmaker():
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def get_session() -> Session:
    session: Session = _get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


def create_datastore(dialect: str):
    """Validate ``dialect`` against the configured url and open a first connection."""
    backend = SUPPORTED_DIALECTS.get((dialect or "").strip().lower())
    if backend is None:
        raise DatastoreError(f"unsupported datastore dialect: {dialect!r}")
    settings = get_settings()
    try:
        url_backend = make_url(settings.database_url).get_backend_name()
    except ArgumentError as exc:
        raise DatastoreError(f"invalid datastore url: {exc}") from exc
    if url_backend != backend:
        raise DatastoreError(f"datastore url uses {url_backend!r} but dialect is {dialect!r}")
    try:
        engine = get_engine()
        with engine.connect():
            pass
    except ImportError as exc:
        raise DatastoreError(f"database driver for {dialect!r} is not installed: {exc}") from exc
    except SQLAlchemyError as exc:
        raise DatastoreError(f"cannot connect to datastore: {exc}") from exc
    return engine


def reset_engine() -> None:
    """Dispose the cached engine so the next call re-reads the settings."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_engine.cache_clear()
    _get_sessionmaker.cache_clear()
