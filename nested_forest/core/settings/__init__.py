"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (database, logging, tree engine), each a frozen
``BaseSettings`` model read from environment variables (or a ``.env`` file)
and exposed through an LRU-cached loader:

    from nested_forest.core.settings import get_tree_settings

    settings = get_tree_settings()
    print(settings.max_build_depth)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import (
    clear_all_caches,
    get_db_settings,
    get_logging_settings,
    get_tree_settings,
)
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .tree import TreeSettings

__all__ = [
    "LoggingSettings",
    "PostgresSettings",
    "TreeSettings",
    "clear_all_caches",
    "get_db_settings",
    "get_logging_settings",
    "get_tree_settings",
]
