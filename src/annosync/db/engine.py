"""Async database engine and session management.

Provides async connections via SQLModel: asyncpg for PostgreSQL in
production, aiosqlite for local files and tests.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from annosync.config import get_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


@dataclass
class _DatabaseState:
    """Internal state holder for database engine and session factory."""

    engine: AsyncEngine | None = field(default=None)
    session_factory: async_sessionmaker[AsyncSession] | None = field(default=None)


# Module-level state (initialized on startup)
_state = _DatabaseState()


def get_database_url() -> str:
    """Get database URL from Settings.

    Raises:
        ValueError: If DATABASE__URL is not configured.
    """
    url = get_settings().database.url
    if not url:
        msg = (
            "DATABASE__URL is not configured. "
            "Set it in your .env file or as an environment variable."
        )
        raise ValueError(msg)
    return url


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # one shared connection so in-memory databases survive across sessions
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 3600,  # Recycle stale connections after 1 hour
        "connect_args": {
            "timeout": 10,  # Connection timeout in seconds
            "command_timeout": 30,  # Query timeout in seconds
        },
    }


def get_engine() -> AsyncEngine | None:
    """Get the database engine for direct access, or None before init."""
    return _state.engine


async def init_db(url: str | None = None) -> None:
    """Initialize database engine and session factory.

    Args:
        url: Connection string; defaults to ``DATABASE__URL``.
    """
    url = url or get_database_url()
    _state.engine = create_async_engine(
        url, echo=get_settings().database.echo, **_engine_options(url)
    )
    _state.session_factory = async_sessionmaker(
        _state.engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("Database engine initialised (%s)", url.split("://", 1)[0])


async def create_tables() -> None:
    """Create all tables that do not exist yet."""
    if _state.engine is None:
        await init_db()
    engine = _state.engine
    assert engine is not None  # For type narrowing
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and clear module state."""
    if _state.engine:
        await _state.engine.dispose()
        _state.engine = None
        _state.session_factory = None


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Get an async database session.

    Yields a session that auto-commits on success and rolls back on error.
    Exceptions are logged before re-raising. The engine is created lazily
    on first use so it lives in the current event loop.

    Raises:
        ValueError: If DATABASE__URL is not configured.
    """
    if _state.session_factory is None:
        await init_db()

    session_factory = _state.session_factory
    assert session_factory is not None  # For type narrowing

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.exception("Database session error, rolling back transaction")
            await session.rollback()
            raise
