"""SQLAlchemy 2.x async database setup.

This module defines the async engine and session factory but does not
hard-code any connection credentials.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from tenacity import retry, stop_after_attempt, wait_exponential

from . import models
from .config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict[str, Any]:
    # SQLite pools reject pool sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db.pool_size,
        "max_overflow": settings.db.max_overflow,
        "pool_pre_ping": True,
    }


engine: AsyncEngine = create_async_engine(
    settings.db.url,
    echo=settings.db.echo,
    future=True,
    **_engine_options(settings.db.url),
)

AsyncSessionMaker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI-friendly async session dependency.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """

    async with AsyncSessionMaker() as session:
        yield session


@retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=0.5, min=0.5, max=4), reraise=True)
async def _ping(bind: AsyncEngine) -> tuple[int, int]:
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))
        departments = await conn.scalar(select(func.count()).select_from(models.Department))
        courses = await conn.scalar(select(func.count()).select_from(models.Course))
    return departments or 0, courses or 0


async def check_connection(bind: AsyncEngine | None = None) -> bool:
    """Verify the database is reachable and the catalog tables exist.

    Retries with exponential backoff before giving up.

    Returns:
        True if the database answered, False otherwise
    """
    try:
        departments, courses = await _ping(bind or engine)
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False

    logger.info(f"Database connected. Departments: {departments}, Courses: {courses}")
    return True
