"""Database helpers (engine/session export)."""

from .session import Base, DatastoreError, create_datastore, get_engine, get_session

__all__ = ["Base", "DatastoreError", "create_datastore", "get_engine", "get_session"]
