"""Core database package: declarative base, mixins, repository and the
nested-set engine.

Base Classes and Mixins:
    - Base: Declarative base with auto table naming
    - IntegerPKMixin: Integer primary key
    - TimestampMixin: created_at, updated_at tracking
    - NestedSetMixin: Forest of nested-set trees (see ``nested``)

Repository:
    - BaseRepository[T]: Generic CRUD with explicit session passing
    - NestedSetRepository[T]: Boundary shifts, locking and subtree queries

Exceptions:
    - RepositoryError: Base exception for repository operations
    - NotFoundError: Entity not found
    - NestedSetError and subclasses: Tree operation failures

Example:
    from nested_forest.core.database import Base, IntegerPKMixin, NestedSetMixin

    class Category(Base, IntegerPKMixin, NestedSetMixin):
        __tablename__ = "categories"
        name: Mapped[str] = mapped_column(String(255))
"""

from nested_forest.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    TimestampMixin,
)
from nested_forest.core.database.exceptions import (
    InvalidHierarchyError,
    InvalidLimitError,
    InvalidParentError,
    InvalidPositionError,
    InvalidSiblingError,
    NestedSetError,
    NotFoundError,
    NotPersistedError,
    RepositoryError,
    StorageFailureError,
)
from nested_forest.core.database.repository import BaseRepository
from nested_forest.core.database.nested import NestedSetMixin, NestedSetRepository

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "IntegerPKMixin",
    "InvalidHierarchyError",
    "InvalidLimitError",
    "InvalidParentError",
    "InvalidPositionError",
    "InvalidSiblingError",
    "NestedSetError",
    "NestedSetMixin",
    "NestedSetRepository",
    "NotFoundError",
    "NotPersistedError",
    "RepositoryError",
    "StorageFailureError",
    "TimestampMixin",
]
