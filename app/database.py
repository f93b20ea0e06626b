"""Async engine, session factory and table bootstrap."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config.settings import settings

# Models must be imported so their tables are on Base.metadata
from app.models import RECORDING_FOLDER_COUNTER, Base

logger = logging.getLogger(__name__)

# Raises the counter to the highest numeric folder already archived, so a
# fresh counter row never hands out a folder that is taken.
_SEED_FOLDER_COUNTER = text(
    """
    INSERT INTO folder_counters (name, value)
    SELECT :name, COALESCE(MAX(CAST(processed_folder AS BIGINT)), 0)
    FROM recordings
    WHERE processed_folder ~ '^[0-9]+$'
    ON CONFLICT (name) DO UPDATE
    SET value = GREATEST(folder_counters.value, EXCLUDED.value)
    """
)


def _create_engine() -> AsyncEngine:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if settings.database.serverless or settings.debug:
        # Serverless databases must be allowed to pause between requests.
        options["poolclass"] = NullPool
    return create_async_engine(settings.database.url, **options)


engine: AsyncEngine = _create_engine()

SessionFactory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session outside of a request, e.g. for scripts and the folder allocator."""

    async with SessionFactory() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request."""

    async with session_scope() as session:
        yield session


async def _seed_folder_counter(conn: AsyncConnection) -> None:
    await conn.execute(_SEED_FOLDER_COUNTER, {"name": RECORDING_FOLDER_COUNTER})


async def init_models() -> None:
    """Create missing tables and line the folder counter up with existing folders."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _seed_folder_counter(conn)
    logger.info("Database tables ensured on %s", settings.database.host)


async def dispose_engine() -> None:
    await engine.dispose()
