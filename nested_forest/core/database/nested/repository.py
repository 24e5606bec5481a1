"""Storage operations the nested-set engine needs.

Everything the engine asks of the database goes through this repository:
bulk boundary shifts, tree reassignment, tree id allocation, row locking and
the depth-annotated descendants query. All bulk UPDATEs synchronize the
session's identity map ("fetch" strategy), so nodes the caller holds keep
matching the database after each statement.
"""

from __future__ import annotations

from functools import cache
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, select, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import aliased

from nested_forest.core.database.repository import BaseRepository
from nested_forest.core.settings import get_tree_settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

# Attribute names of the boundary columns contributed by NestedSetMixin
BOUNDARY_ATTRS = ("left", "right", "tree_id")


class NestedSetRepository[T](BaseRepository[T]):
    """Repository over a model using NestedSetMixin.

    Provides:
        - shift(session, column, delta, *criteria) -> int
        - shift_range(session, tree_id, low, high, delta) -> int
        - assign_tree(session, tree_id, *criteria) -> int
        - load_boundaries(session, node) -> None
        - max_tree_id(session) -> int
        - next_tree_id(session) -> int
        - lock_trees(session, *tree_ids) -> None
        - lock_nodes(session, *nodes) -> None
        - select_descendants(session, node, limit) -> list[tuple[T, int]]
        - roots(session) -> Sequence[T]
        - root(session, tree_id) -> T | None
    """

    __slots__ = ()

    @property
    def left_col(self) -> InstrumentedAttribute[int]:
        return self.model.left  # type: ignore[attr-defined]

    @property
    def right_col(self) -> InstrumentedAttribute[int]:
        return self.model.right  # type: ignore[attr-defined]

    @property
    def tree_col(self) -> InstrumentedAttribute[int]:
        return self.model.tree_id  # type: ignore[attr-defined]

    async def shift(
        self,
        session: AsyncSession,
        column: InstrumentedAttribute[int],
        delta: int,
        *criteria: ColumnElement[bool],
    ) -> int:
        """Add ``delta`` to ``column`` on every row matching ``criteria``.

        Returns:
            Number of rows updated
        """
        stmt = (
            update(self.model)
            .where(*criteria)
            .values({column: column + delta})
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        self._lazy.debug(
            lambda: f"db.shift: {self.model.__name__}.{column.key} += {delta} -> {result.rowcount} rows"
        )
        return result.rowcount

    async def shift_range(
        self,
        session: AsyncSession,
        tree_id: int,
        low: int,
        high: int,
        delta: int,
    ) -> int:
        """Move every row whose ``left`` lies in [low, high] by ``delta``.

        Both boundary columns move in the same statement, so the range
        predicate is evaluated once, against the values before the shift.

        Returns:
            Number of rows updated
        """
        stmt = (
            update(self.model)
            .where(self.tree_col == tree_id, self.left_col.between(low, high))
            .values({self.left_col: self.left_col + delta, self.right_col: self.right_col + delta})
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        self._lazy.debug(
            lambda: f"db.shift_range: {self.model.__name__} tree={tree_id} [{low}, {high}] += {delta} -> {result.rowcount} rows"
        )
        return result.rowcount

    async def assign_tree(
        self,
        session: AsyncSession,
        tree_id: int,
        *criteria: ColumnElement[bool],
    ) -> int:
        """Set ``tree_id`` on every row matching ``criteria``.

        Returns:
            Number of rows updated
        """
        stmt = (
            update(self.model)
            .where(*criteria)
            .values({self.tree_col: tree_id})
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        self._lazy.debug(
            lambda: f"db.assign_tree: {self.model.__name__} -> tree {tree_id}, {result.rowcount} rows"
        )
        return result.rowcount

    async def load_boundaries(self, session: AsyncSession, node: Any) -> None:
        """Fetch ``node``'s boundary attributes if they are expired or unloaded."""
        if sa_inspect(node).unloaded & set(BOUNDARY_ATTRS):
            await self.refresh(session, node, BOUNDARY_ATTRS)

    async def max_tree_id(self, session: AsyncSession) -> int:
        """Highest tree id in use, 0 for an empty table."""
        result = await session.execute(select(func.max(self.tree_col)))
        return int(result.scalar() or 0)

    async def next_tree_id(self, session: AsyncSession) -> int:
        """Tree id for a brand-new tree.

        On PostgreSQL the allocation is serialized per table with a
        transaction-scoped advisory lock, held until the caller's transaction
        ends, so a concurrent caller only reads ``max(tree_id)`` once the new
        tree is committed. Must run inside the transaction that inserts the
        tree.
        """
        if get_tree_settings().lock_rows and self._dialect_name(session) == "postgresql":
            await session.execute(
                select(func.pg_advisory_xact_lock(func.hashtext(self.model.__tablename__)))
            )
            self._lazy.debug(lambda: f"db.next_tree_id: {self.model.__name__} allocation locked")
        return await self.max_tree_id(session) + 1

    async def lock_trees(self, session: AsyncSession, *tree_ids: int) -> None:
        """Lock every row of the given trees until the transaction ends.

        Rows are locked in (tree_id, primary key) order in one statement.
        This is the first lock a mutation takes (see lock_nodes), so two
        writers touching overlapping trees acquire rows in the same order.
        Backends without row locks (SQLite) compile this to a plain SELECT.
        """
        if not get_tree_settings().lock_rows:
            return

        ids = sorted({tree_id for tree_id in tree_ids if tree_id is not None})
        if not ids:
            return

        pk = self._pk_attr()
        stmt = (
            select(pk)
            .where(self.tree_col.in_(ids))
            .order_by(self.tree_col, pk)
            .with_for_update()
        )
        await session.execute(stmt)
        self._lazy.debug(lambda: f"db.lock_trees: {self.model.__name__} trees={ids}")

    async def lock_nodes(self, session: AsyncSession, *nodes: Any) -> None:
        """Lock the trees holding ``nodes``, then reload their boundaries.

        Tree ids are read without locks first; the tree locks are taken in
        one ordered statement and the boundaries re-read under them. A node
        moved to another tree in between is picked up by locking its new
        tree as well.

        Raises:
            NotFoundError: If a node's row no longer exists.
        """
        for node in nodes:
            await self.refresh(session, node, BOUNDARY_ATTRS)
        if not get_tree_settings().lock_rows:
            return

        locked: set[int] = set()
        while (wanted := {node.tree_id for node in nodes}) - locked:
            locked |= wanted
            await self.lock_trees(session, *locked)
            for node in nodes:
                await self.refresh(session, node, BOUNDARY_ATTRS)

    def _dialect_name(self, session: AsyncSession) -> str:
        return session.get_bind(mapper=sa_inspect(self.model)).dialect.name

    async def select_descendants(
        self,
        session: AsyncSession,
        node: Any,
        limit: int | None = None,
    ) -> list[tuple[T, int]]:
        """Descendants of ``node`` with their depth relative to it.

        A descendant's depth is the number of rows inside ``node``'s range
        (``node`` included) whose range contains it, minus one: immediate
        children are 1, grandchildren 2, and so on. Rows are ordered by
        ``left``, i.e. in preorder.

        Args:
            session: Database session
            node: Persisted node whose subtree is read
            limit: Deepest relative depth to return (None for all)

        Returns:
            (row, depth) pairs in preorder
        """
        descendant = aliased(self.model, name="descendant")
        ancestor = aliased(self.model, name="ancestor")
        depth = func.count() - 1

        left, right, tree_id = node.left, node.right, node.tree_id

        stmt = (
            select(descendant, depth.label("depth"))
            .join(
                ancestor,
                and_(
                    ancestor.tree_id == descendant.tree_id,
                    descendant.left.between(ancestor.left, ancestor.right),
                ),
            )
            .where(
                descendant.tree_id == tree_id,
                descendant.left > left,
                descendant.left < right,
                ancestor.left.between(left, right),
            )
            .group_by(getattr(descendant, self._pk_attr().key))
            .order_by(descendant.left)
        )
        if limit is not None:
            stmt = stmt.having(depth <= limit)

        result = await session.execute(stmt)
        rows = [(row[0], int(row[1])) for row in result.all()]

        self._lazy.debug(
            lambda: f"db.select_descendants: {self.model.__name__} tree={tree_id} [{left}, {right}] limit={limit} -> {len(rows)} rows"
        )
        return rows

    async def roots(self, session: AsyncSession) -> Sequence[T]:
        """Root node of every tree, ordered by tree id."""
        stmt = select(self.model).where(self.left_col == 1).order_by(self.tree_col)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def root(self, session: AsyncSession, tree_id: int) -> T | None:
        """Root node of one tree."""
        stmt = select(self.model).where(self.tree_col == tree_id, self.left_col == 1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


@cache
def repository_for(model: type[Any]) -> NestedSetRepository[Any]:
    """Shared repository instance per model class."""
    return NestedSetRepository(model)


__all__ = [
    "BOUNDARY_ATTRS",
    "NestedSetRepository",
    "repository_for",
]
