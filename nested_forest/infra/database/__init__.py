"""Database engine and session management."""

from nested_forest.infra.database.session import (
    close_database,
    create_engine,
    get_async_session,
    get_engine,
    get_session_factory,
    init_database,
)

__all__ = [
    "close_database",
    "create_engine",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
