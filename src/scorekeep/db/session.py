# src/scorekeep/db/session.py

"""Engine and session factories for the scorekeep database.

Request handlers get a session through ``get_db``. Work scheduled with
``BackgroundTasks`` (key ``last_used_at`` updates, version pruning) runs
after the response is sent and opens its own sessions from
``get_session_factory``.
"""
import logging
import os
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./scorekeep.db")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"


def _create_engine(url: str) -> AsyncEngine:
    """Build the engine; pool settings only apply to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=DB_ECHO)

    return create_async_engine(
        url,
        pool_size=int(os.getenv("DB_POOL_SIZE", "20")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
        pool_pre_ping=True,
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "3600")),
        echo=DB_ECHO,
    )


engine = _create_engine(DATABASE_URL)

# Rows stay readable after commit; responses are built from them.
AsyncSessionLocal = async_sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session, rolling back if the handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Rolling back request session after error: {e}")
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the factory background tasks open their sessions from."""
    return AsyncSessionLocal
