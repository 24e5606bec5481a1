"""Async engine and session management.

The engine and session factory are built lazily from ``PostgresSettings``
on first use, so importing this module never opens a connection. Tests and
scripts can build their own engine with ``create_engine`` and get the same
SQLite SAVEPOINT support the nested-set engine relies on.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from nested_forest.core.database.base import Base
from nested_forest.core.settings import get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy, not the sqlite3 module, emit BEGIN.

    pysqlite's implicit transaction handling breaks SAVEPOINT; turning it
    off and issuing BEGIN from the "begin" event restores it.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        _ = connection_record
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_engine(url: str | None = None, **kwargs: Any) -> AsyncEngine:
    """Create an async engine.

    Args:
        url: Database URL (defaults to the configured one)
        **kwargs: Extra create_async_engine arguments, overriding settings

    Returns:
        AsyncEngine; SQLite engines come with SAVEPOINT support enabled
    """
    db_settings = get_db_settings()
    if url is None:
        url = db_settings.get_sqlalchemy_url()
        options = {**db_settings.sqlalchemy_engine_kwargs(), **kwargs}
    else:
        options = kwargs

    engine = create_async_engine(url, **options)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    return engine


def get_engine() -> AsyncEngine:
    """Get the shared engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the shared session factory, creating it on first call."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Commits when the block exits normally, rolls back when it raises.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            root = await Menu(name="Main").make_root(session)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_database(*, create_tables: bool = True) -> None:
    """Check connectivity and create missing tables.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If the database is unreachable.
    """
    from nested_forest.core import models  # noqa: F401  (registers tables on Base.metadata)

    engine = get_engine()
    url = engine.url.render_as_string(hide_password=True)
    logger.info("Initializing database connection", extra={"url": url})

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("Failed to connect to database", extra={"url": url, "error": str(e)})
        raise

    logger.info(
        "Database connection established successfully",
        extra={"url": url, "driver": engine.dialect.driver},
    )


async def close_database() -> None:
    """Dispose the shared engine and forget the session factory.

    This should be called during application shutdown.
    """
    global _engine, _session_factory
    if _engine is None:
        return

    logger.info("Closing database connection")
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database connection closed successfully")


__all__ = [
    "close_database",
    "create_engine",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
