"""Nested-set engine settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TreeSettings(BaseSettings):
    """Behaviour knobs for tree mutations and bulk loading.

    Environment variables use TREE_ prefix.
    Example: TREE_MAX_BUILD_DEPTH=32, TREE_LOCK_ROWS=false
    """

    root_name: str = Field(
        default="Root Item",
        min_length=1,
        max_length=255,
        description="Name given to the root created by the bulk loader.",
    )

    max_build_depth: int = Field(
        default=64,
        ge=1,
        le=1000,
        description="Deepest nesting level the bulk loader accepts before refusing the input.",
    )

    lock_rows: bool = Field(
        default=True,
        description=(
            "Lock the rows of every affected tree (SELECT ... FOR UPDATE) before "
            "reading boundaries. Ignored by backends without row locks (SQLite)."
        ),
    )

    continue_on_error: bool = Field(
        default=False,
        description=(
            "Let the bulk loader log and skip a failing top-level item instead of "
            "aborting the whole load."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="TREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
