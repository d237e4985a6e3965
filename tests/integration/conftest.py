"""Integration test configuration.

Tests run against a real database engine. ``TEST_DATABASE_URL`` selects
one (e.g. PostgreSQL via asyncpg); without it an in-memory SQLite
database is used, so the suite runs anywhere.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import pytest_asyncio

from annosync.db.engine import close_db, create_tables, init_db

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(autouse=True)
async def db_engine() -> AsyncGenerator[None]:
    """Create a fresh engine and schema for each test, dispose after.

    The engine's connections bind to the event loop that created them,
    so each test gets its own engine.
    """
    url = os.environ.get("TEST_DATABASE_URL") or SQLITE_MEMORY_URL
    await init_db(url)
    await create_tables()

    yield

    await close_db()
