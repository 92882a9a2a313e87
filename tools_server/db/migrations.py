"""Schema auto-migration for the SQL datastore."""
from __future__ import annotations

import sys

from sqlalchemy.exc import SQLAlchemyError

from tools_server.core.log import get_logger

from .session import Base, get_engine
from . import models  # noqa: F401  # ensure models are imported for metadata

logger = get_logger(__name__)

MIGRATED_MODELS = (
    models.Component,
    models.Account,
    models.User,
    models.Role,
    models.Page,
    models.Query,
    models.UserSession,
)


def run_migrations() -> None:
    """Create any missing table; existing tables are left untouched."""
    engine = get_engine()
    tables = [model.__table__ for model in MIGRATED_MODELS]
    Base.metadata.create_all(bind=engine, tables=tables)
    logger.info("Successfully run all migrations")


if __name__ == "__main__":
    try:
        run_migrations()
    except SQLAlchemyError as exc:
        sys.exit(f"Failed to create tables: {exc}")
