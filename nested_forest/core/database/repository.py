"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing.
For complex queries, use the session directly - this is a convenience, not a cage.

Example:
    from nested_forest.core.database import BaseRepository
    from nested_forest.core.models import Menu

    menu_repo = BaseRepository(Menu)
    menu = await menu_repo.get_or_raise(session, 1)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import InvalidRequestError

from nested_forest.core.database.exceptions import NotFoundError
from nested_forest.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


class BaseRepository[T]:
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - create(session, instance) -> T
        - refresh(session, instance) -> T (raises NotFoundError)

    Session is always explicit - no hidden state.
    """

    __slots__ = ("_lazy", "_logger", "model")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class (e.g., Menu)
        """
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value

        Returns:
            Entity if found, None otherwise
        """
        instance = await session.get(self.model, id)
        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(self, session: AsyncSession, id: Any) -> T:  # noqa: A002
        """Get entity by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If entity doesn't exist
        """
        instance = await self.get(session, id)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session and flushes to get generated values (like id).

        Args:
            session: Database session
            instance: Entity instance to persist

        Returns:
            Persisted entity with generated fields populated
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def refresh(
        self,
        session: AsyncSession,
        instance: T,
        attribute_names: Iterable[str] | None = None,
    ) -> T:
        """Reload an entity's column values from the database.

        Args:
            session: Database session
            instance: Persistent entity
            attribute_names: Limit the refresh to these attributes

        Returns:
            The same instance, refreshed

        Raises:
            NotFoundError: If the row no longer exists
        """
        try:
            await session.refresh(instance, attribute_names=attribute_names)
        except InvalidRequestError as exc:
            identity = sa_inspect(instance).identity
            raise NotFoundError(self.model.__name__, {"id": identity[0] if identity else None}) from exc
        return instance

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        """Get primary key attribute.

        Inspects the model to find the primary key column, falling back to 'id'.
        """
        mapper = sa_inspect(self.model)
        pk_cols: Sequence[Any] = getattr(mapper, "primary_key", ())
        if pk_cols:
            prop = mapper.get_property_by_column(pk_cols[0])
            return cast("InstrumentedAttribute[Any]", getattr(self.model, prop.key))

        attr = getattr(self.model, "id", None)
        if attr is None:
            raise AttributeError(f"{self.model.__name__} has no 'id' attribute")
        return cast("InstrumentedAttribute[Any]", attr)


__all__ = [
    "BaseRepository",
]
