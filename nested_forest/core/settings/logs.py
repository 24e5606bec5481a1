"""Logging settings for applications embedding the nested-set engine.

Only what ``setup_logging`` consumes is configurable. The engine logs every
boundary shift at DEBUG, which is far too chatty for a root logger, so its
loggers get their own level (``LOG_ENGINE_LEVEL``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Root and engine logging.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=WARNING, LOG_ENGINE_LEVEL=DEBUG, LOG_FILE_PATH=logs/forest.jsonl
    """

    level: LogLevel = Field(default="INFO", description="Root logger level")
    engine_level: LogLevel | None = Field(
        default=None,
        description="Level for the tree engine and repository loggers; None inherits the root level",
    )
    json_logs: bool = Field(default=True, alias="json", description="JSON Lines output instead of plain text")
    service_name: str = Field(default="nested-forest", description="Static 'service' field of JSON records")

    console_enabled: bool = Field(default=True, description="Log to stderr")
    console_level: LogLevel | None = Field(default=None, description="stderr handler level")

    file_path: Path | None = Field(default=None, description="Rotating log file; None disables file logging")
    file_level: LogLevel | None = Field(default=None, description="File handler level")
    file_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024, description="Rotate after this many bytes")
    file_backup_count: int = Field(default=5, ge=0, description="Rotated files kept")

    @field_validator("level", "engine_level", "console_level", "file_level", mode="before")
    @classmethod
    def _upper(cls, v: str | None) -> str | None:
        return v.upper() if isinstance(v, str) else v

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for configure_logging()."""
        return {
            "log_level": self.level,
            "engine_level": self.engine_level,
            "json_logs": self.json_logs,
            "service_name": self.service_name,
            "console_enabled": self.console_enabled,
            "console_level": self.console_level,
            "file_path": self.file_path,
            "file_level": self.file_level,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )
