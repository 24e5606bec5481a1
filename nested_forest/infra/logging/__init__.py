"""Logging infrastructure.

Provides structured logging with:
- JSONL format with OpenTelemetry trace correlation
- QueueHandler + QueueListener for non-blocking I/O
- Per-handler log levels (console vs file)
- Lazy evaluation for expensive debug output

Basic usage:
    from nested_forest.infra.logging import get_lazy_logger, setup_logging

    setup_logging()  # reads LOG_* settings

    logger = get_lazy_logger(__name__)
    logger.debug(lambda: f"Rows: {dump(rows)}")  # Only runs if DEBUG enabled
"""

from nested_forest.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from nested_forest.infra.logging.formatters import JSONFormatter
from nested_forest.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "JSONFormatter",
    "LazyLoggerAdapter",
    "configure_logging",
    "get_lazy_logger",
    "setup_logging",
    "shutdown",
]
