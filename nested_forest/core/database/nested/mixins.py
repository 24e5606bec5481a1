"""Mixin for models stored as nested sets.

Adds the boundary columns and the tree API to a declarative model. Tree
mutations and reads are async methods taking an explicit session; the
boundary-derived properties (``size``, ``is_root``) never query the database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Index, Integer
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from nested_forest.core.database.exceptions import NotPersistedError
from nested_forest.core.database.nested import arithmetic, loader, placement, reader
from nested_forest.core.database.nested.children import UNLOADED, ChildrenState
from nested_forest.core.database.nested.repository import repository_for

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from typing import Self

    from sqlalchemy.ext.asyncio import AsyncSession

    from nested_forest.core.database.nested.arithmetic import ChildPosition, SiblingPosition


class NestedSetMixin:
    """Mixin for models kept in a forest of nested-set trees.

    Every row carries ``left``/``right`` boundaries (columns ``lft``/``rgt``)
    and the ``tree_id`` of the tree it belongs to. A node's descendants are
    the rows of its tree whose boundaries fall strictly between its own.

    Example:
        >>> from nested_forest.core.database import Base, IntegerPKMixin
        >>>
        >>> class Category(Base, IntegerPKMixin, NestedSetMixin):
        ...     __tablename__ = "categories"
        ...     name: Mapped[str] = mapped_column(String(255))
        >>>
        >>> root = await Category(name="All").make_root(session)
        >>> books = await Category(name="Books").place_as_last_child(session, root)
        >>> music = await Category(name="Music").place_as_next_sibling(session, books)
        >>> [c.name for c in await root.load_children(session)]
        ['Books', 'Music']

    Note:
        - Models defining their own ``__table_args__`` must add the
          (tree_id, lft, rgt) index themselves
        - The children cache is per instance and is not shared across sessions
    """

    __allow_unmapped__ = True

    left: Mapped[int] = mapped_column("lft", Integer, nullable=False, comment="Left boundary")
    right: Mapped[int] = mapped_column("rgt", Integer, nullable=False, comment="Right boundary")
    tree_id: Mapped[int] = mapped_column(Integer, nullable=False, comment="Tree this row belongs to")

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Any, ...]:
        return (Index(f"ix_{cls.__tablename__}_tree_bounds", "tree_id", "lft", "rgt"),)

    @property
    def size(self) -> int:
        """Width of this node's range; 1 for a leaf.

        This property does NOT query the database.
        """
        return arithmetic.size(self.left, self.right)

    @property
    def is_root(self) -> bool:
        """Check if this node is the root of its tree (left == 1).

        This property does NOT query the database.
        """
        return self.left == 1

    @property
    def is_persisted(self) -> bool:
        return placement.is_persisted(self)

    @property
    def children(self) -> ChildrenState[Self]:
        """Cached children state: Unloaded, Empty or Loaded(nodes)."""
        return getattr(self, "_children_state", UNLOADED)

    def invalidate_children(self) -> None:
        """Forget cached children; the next load_children() queries again."""
        self._children_state = UNLOADED

    def _set_children_state(self, state: ChildrenState[Self]) -> None:
        self._children_state = state

    async def make_root(self, session: AsyncSession) -> Self:
        """Make this node the root of a tree (see placement.make_root)."""
        return await placement.make_root(session, self)

    async def place_as_child(
        self,
        session: AsyncSession,
        parent: Self,
        position: ChildPosition | str = "last",
    ) -> Self:
        return await placement.place_as_child(session, self, parent, position)

    async def place_as_sibling(
        self,
        session: AsyncSession,
        sibling: Self,
        position: SiblingPosition | str = "next",
    ) -> Self:
        return await placement.place_as_sibling(session, self, sibling, position)

    async def place_as_first_child(self, session: AsyncSession, parent: Self) -> Self:
        return await placement.place_as_first_child(session, self, parent)

    async def place_as_last_child(self, session: AsyncSession, parent: Self) -> Self:
        return await placement.place_as_last_child(session, self, parent)

    async def place_as_previous_sibling(self, session: AsyncSession, sibling: Self) -> Self:
        return await placement.place_as_previous_sibling(session, self, sibling)

    async def place_as_next_sibling(self, session: AsyncSession, sibling: Self) -> Self:
        return await placement.place_as_next_sibling(session, self, sibling)

    async def load_children(self, session: AsyncSession, limit: int | None = None) -> list[Self]:
        """Children in sibling order, fetched with their subtree on first call.

        Args:
            session: Async database session
            limit: Levels to fetch below this node (None for all)

        Returns:
            List of child instances
        """
        return await reader.load_children(session, self, limit)

    async def reload(self, session: AsyncSession) -> Self:
        """Re-read this node from the database and drop its children cache.

        Raises:
            NotPersistedError: If this node has never been persisted.
            NotFoundError: If the row no longer exists.
        """
        if not self.is_persisted:
            raise NotPersistedError(type(self).__name__, "reload")
        await repository_for(type(self)).refresh(session, self)
        self.invalidate_children()
        return self

    @classmethod
    async def get_roots(cls, session: AsyncSession) -> Sequence[Self]:
        """Get the root node of every tree, ordered by tree id."""
        return await repository_for(cls).roots(session)

    @classmethod
    async def get_root(cls, session: AsyncSession, tree_id: int) -> Self | None:
        """Get the root node of one tree, or None if the tree does not exist."""
        return await repository_for(cls).root(session, tree_id)

    @classmethod
    async def build_forest(
        cls,
        session: AsyncSession,
        items: Iterable[Mapping[str, Any]],
        **options: Any,
    ) -> Self:
        """Create a new tree of this model from nested item mappings.

        See loader.build_forest for the item format and options.
        """
        return await loader.build_forest(session, cls, items, **options)


__all__ = [
    "NestedSetMixin",
]
