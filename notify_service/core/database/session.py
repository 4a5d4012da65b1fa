"""Async engine and session factory construction (psycopg3 driver).

Nothing here is created at import time: the application builds one engine
and one session factory at startup and passes the factory to whatever
needs a session.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from notify_service.core.database.base import Base

if TYPE_CHECKING:
    from notify_service.core.settings import PostgresSettings

logger = logging.getLogger(__name__)


def create_engine(db_settings: PostgresSettings) -> AsyncEngine:
    """Create the async engine described by ``db_settings``."""
    engine = create_async_engine(
        db_settings.get_sqlalchemy_url(),
        **db_settings.sqlalchemy_engine_kwargs(),
    )
    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "host": db_settings.host},
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all mapped tables that do not exist yet.

    Migrations (alembic) are the normal path; this serves local
    development and throwaway databases.
    """
    import notify_service.features.notifications.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
