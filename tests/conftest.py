"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings defaults so tests never reach PostgreSQL
    - Database Fixtures: in-memory SQLite engine and session with tables created
    - Settings Fixtures: cache reset between tests
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("DB_FALLBACK_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_caches():
    """Reload settings for every test so monkeypatched env vars apply."""
    from nested_forest.core.settings import clear_all_caches

    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    Built through ``create_engine`` so SAVEPOINTs work the same way they do
    for the application engine.

    Yields:
        Async SQLAlchemy engine connected to in-memory SQLite.
    """
    from nested_forest.infra.database.session import create_engine

    engine = create_engine("sqlite+aiosqlite:///:memory:", echo=False)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async database session with all tables created.

    Args:
        db_engine: Async SQLAlchemy engine fixture.

    Yields:
        Async database session for testing.

    Example:
        async def test_root(db_session):
            root = await Menu(name="Main").make_root(db_session)
            assert root.is_root
    """
    from nested_forest.core import models  # noqa: F401
    from nested_forest.core.database.base import Base

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
