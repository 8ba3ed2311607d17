"""Database initialization utilities."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

# Import models to register with Base.metadata
import finsync.infrastructure.persistence.sqlalchemy.models  # noqa: F401
from finsync.infrastructure.persistence.sqlalchemy.database_router import (
    build_engine,
)
from finsync.infrastructure.persistence.sqlalchemy.models.base import Base
from finsync_config.settings import get_settings

logger = logging.getLogger(__name__)


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """
    Create all database tables on the primary (idempotent).

    Uses SQLAlchemy's create_all() which only creates missing tables.
    Existing tables and their data are never modified or deleted.
    """
    owned = engine is None
    engine = engine or build_engine(get_settings().database_primary_url)
    logger.info("Ensuring all database tables exist...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if owned:
        await engine.dispose()
    logger.info("Database schema is up to date (missing tables created if needed)")


async def drop_tables(engine: Optional[AsyncEngine] = None) -> None:
    """
    Drop all database tables (USE WITH CAUTION!).

    This is primarily for testing and development reset scenarios.
    """
    owned = engine is None
    engine = engine or build_engine(get_settings().database_primary_url)
    logger.warning("Dropping all database tables...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    if owned:
        await engine.dispose()
    logger.info("Database tables dropped successfully")
