"""Database initialization module.

Creates the OTP tables on app startup when Alembic migrations have not been run.
"""

import logging

from sqlalchemy import Engine, inspect

from app.models import Base

logger = logging.getLogger(__name__)


def init_database_schema(engine: Engine) -> None:
    """Create missing tables; existing tables are left untouched."""

    existing = set(inspect(engine).get_table_names())
    missing = [name for name in Base.metadata.tables if name not in existing]
    if not missing:
        logger.debug("Database schema already present")
        return
    try:
        Base.metadata.create_all(bind=engine)
    except Exception:
        logger.exception("Failed to initialize database schema (missing=%s)", missing)
        raise
    logger.info("Database schema initialized (created=%s)", missing)
