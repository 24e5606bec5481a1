"""Database repository and nested-set exceptions.

Custom exceptions that provide better error messages and typing than raw
SQLAlchemy exceptions. Every error carries a message plus a ``details``
mapping with the ids and boundaries involved.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations.

    Raised when a repository operation fails due to programming
    errors, configuration issues, or unexpected states.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the model (e.g., "Menu")
            identifier: Key-value pairs used in the search (e.g., {"id": 123})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


# ============================================================================
# Nested-set errors
# ============================================================================


class NestedSetError(RepositoryError):
    """Base exception for tree mutations and reads.

    Precondition errors (every subclass except StorageFailureError) are
    raised before the first statement is issued, so catching one never
    leaves a half-applied mutation behind.
    """


class NotPersistedError(NestedSetError):
    """Operation needs a persisted node but received a transient one."""

    def __init__(self, model_name: str, operation: str):
        self.model_name = model_name
        self.operation = operation
        super().__init__(
            f"You cannot call {operation}() on a {model_name} that hasn't been persisted",
            details={"model": model_name, "operation": operation},
        )


class InvalidParentError(NestedSetError):
    """The parent must be persisted before children can be assigned to it."""

    def __init__(self, model_name: str):
        super().__init__(
            f"The parent {model_name} must exist before you can assign children to it",
            details={"model": model_name},
        )


class InvalidSiblingError(NestedSetError):
    """The sibling must be persisted before siblings can be assigned to it."""

    def __init__(self, model_name: str):
        super().__init__(
            f"The sibling {model_name} must exist before you can assign siblings to it",
            details={"model": model_name},
        )


class InvalidPositionError(NestedSetError):
    """Position argument outside its enumerated set, or a bad gap width.

    Attributes:
        position: The rejected value
        allowed: The accepted values
    """

    def __init__(self, position: Any, allowed: tuple[str, ...] | None = None):
        self.position = position
        self.allowed = allowed or ()
        details: dict[str, Any] = {"position": position}
        if allowed:
            details["allowed"] = list(allowed)
        super().__init__(f"Position {position!r} is not a valid position", details=details)


class InvalidLimitError(NestedSetError, ValueError):
    """Depth limit for a subtree read is below 1."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"limit must be at least 1, got {limit}", details={"limit": limit})


class InvalidHierarchyError(NestedSetError):
    """Mutation would break the tree shape.

    Raised for cycles (placing a node under itself or one of its own
    descendants), for a second top-level node next to a root, and for
    bulk-load input nested deeper than allowed.
    """


class StorageFailureError(NestedSetError):
    """The storage backend failed while a tree operation was in flight.

    The enclosing transaction (or savepoint) has been rolled back by the
    time this propagates. The backend exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, error: Exception):
        self.operation = operation
        super().__init__(
            f"Storage failure during {operation}",
            details={"operation": operation, "error": str(error)},
        )


__all__ = [
    "InvalidHierarchyError",
    "InvalidLimitError",
    "InvalidParentError",
    "InvalidPositionError",
    "InvalidSiblingError",
    "NestedSetError",
    "NotFoundError",
    "NotPersistedError",
    "RepositoryError",
    "StorageFailureError",
]
