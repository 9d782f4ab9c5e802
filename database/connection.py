"""
Async database engine and session management.

Usage:
    from database.connection import get_async_session

    async with get_async_session() as session:
        result = await session.execute(select(ServiceReminder))

Services that need to open their own sessions take a session factory
(`async_sessionmaker`) in their constructor; production code passes
`get_session_factory()`, tests pass a factory bound to a throwaway database.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import get_settings

logger = logging.getLogger(__name__)


def create_engine_for_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    engine = create_engine_for_url(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    logger.info(f"Database engine created: driver={engine.url.drivername}")
    return engine


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return create_session_factory(get_engine())


@asynccontextmanager
async def get_async_session() -> AsyncIterator[AsyncSession]:
    """
    Open a session from the application session factory.

    The session is rolled back if the block raises and always closed.
    Callers commit explicitly.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose of the engine connection pool (call on shutdown)."""
    await get_engine().dispose()
    logger.info("Database engine disposed")
