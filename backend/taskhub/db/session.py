"""Async engine and session handling for the API and the Celery worker."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

import structlog
from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskhub.config import get_settings

logger = structlog.get_logger()
settings = get_settings()

engine = create_async_engine(
    str(settings.database_url),
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_timeout=settings.database_pool_timeout,
    pool_pre_ping=True,
    echo=settings.debug,
)

# Sessions never commit on their own; the rule repository's unit of work does
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def check_database(session: AsyncSession) -> str | None:
    """Run a trivial query; return the error text, or None when healthy."""
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("database_check_failed", error=str(e))
        return str(e)
    return None


async def init_db() -> None:
    """Fail startup early when the database is unreachable."""
    async with async_session_factory() as session:
        error = await check_database(session)
    if error is not None:
        raise RuntimeError(f"Database unavailable: {error}")


async def close_db() -> None:
    """Close database connection pool."""
    await engine.dispose()


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Session for work outside a request, e.g. a Celery task."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for dependency injection."""
    async with session_scope() as session:
        yield session


DBSession = Annotated[AsyncSession, Depends(get_db_session)]
