"""Database session management using SQLModel async."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# Import all models to ensure they are registered with SQLModel metadata
import dandi.models  # noqa: F401
from dandi.config import get_settings
from dandi.errors import ServiceUnavailableError

logger = structlog.get_logger()

# Lazy initialization - engine created on first use
_engine = None
_async_session_factory = None

NOT_CONFIGURED_MESSAGE = "Database not configured. Please check your environment variables."


def ensure_configured() -> None:
    """Fail fast when no credential store URL is configured.

    Raises:
        ServiceUnavailableError: If ``database.url`` is unset
    """
    if not get_settings().database.is_configured:
        raise ServiceUnavailableError(NOT_CONFIGURED_MESSAGE)


def _get_engine():
    """Get or create the async engine."""
    global _engine
    if _engine is None:
        ensure_configured()
        settings = get_settings()
        _engine = create_async_engine(
            settings.database.url,
            echo=settings.database.echo,
            future=True,
            pool_pre_ping=True,
        )
    return _engine


def _get_session_factory():
    """Get or create the async session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_db() -> None:
    """Create tables.

    Skipped when the store is not configured; requests then answer 503.
    In production, manage the schema with migrations instead.
    """
    if not get_settings().database.is_configured:
        logger.warning("db.init.skipped", reason="database.url not configured")
        return

    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Close database connection."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session as context manager.

    Usage:
        async with get_async_session() as session:
            result = await session.execute(select(Model))
    """
    session_factory = _get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database session.

    Usage:
        @app.get("/items")
        async def get_items(session: AsyncSession = Depends(get_session_dependency)):
            ...
    """
    ensure_configured()
    async with get_async_session() as session:
        yield session
