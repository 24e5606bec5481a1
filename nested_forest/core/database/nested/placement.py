"""Creating roots and placing nodes relative to a parent or sibling.

Every operation dispatches on the node's persistence state:

- transient (never flushed): the node is inserted as a leaf; a gap of 2 is
  opened at the computed ``left`` and the node fills it
- persisted: the node and its subtree are moved by the relocation engine

Preconditions (position values, persisted reference, no cycles, no second
top-level node) are all checked before the first write.

Example:
    root = await make_root(session, Menu(name="Main"))
    about = await place_as_last_child(session, Menu(name="About"), root)
    home = await place_as_previous_sibling(session, Menu(name="Home"), about)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect

from nested_forest.core.database.exceptions import (
    InvalidHierarchyError,
    InvalidParentError,
    InvalidSiblingError,
)
from nested_forest.core.database.nested import arithmetic
from nested_forest.core.database.nested.arithmetic import ChildPosition, SiblingPosition
from nested_forest.core.database.nested.gaps import open_gap
from nested_forest.core.database.nested.relocation import relocate, relocate_as_root
from nested_forest.core.database.nested.repository import BOUNDARY_ATTRS, repository_for
from nested_forest.core.database.nested.transaction import atomic
from nested_forest.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

_lazy = get_lazy_logger(__name__)


def is_persisted(node: Any) -> bool:
    """Whether ``node`` has a database identity (i.e. has been flushed)."""
    return sa_inspect(node).has_identity


def _attach(session: AsyncSession, node: Any) -> None:
    """Bring a detached-but-persisted node back into ``session``."""
    if sa_inspect(node).detached:
        session.add(node)


def _forget_pending(session: AsyncSession, node: Any) -> None:
    """Take a transient node out of the session until it has boundaries.

    A pending node without boundaries would violate NOT NULL on any flush
    issued while the gap is being opened.
    """
    if sa_inspect(node).pending:
        session.expunge(node)


def _reject_root_sibling(reference: Any) -> None:
    if reference.left == 1:
        raise InvalidHierarchyError(
            "A root cannot have siblings; use make_root() to start another tree",
            details={"tree_id": reference.tree_id},
        )


async def _insert_leaf(
    session: AsyncSession,
    node: Any,
    reference: Any,
    left_for: Callable[[Any], int],
    *,
    operation: str,
    validate: Callable[[Any], None] | None = None,
) -> Any:
    """Insert transient ``node`` as a leaf at ``left_for(reference)``."""
    repository = repository_for(type(node))
    _forget_pending(session, node)

    async with atomic(session, operation):
        await repository.lock_nodes(session, reference)
        if validate is not None:
            validate(reference)

        tree_id = reference.tree_id
        new_left = left_for(reference)
        await open_gap(session, repository, tree_id, new_left, arithmetic.gap_width(arithmetic.LEAF_SIZE))

        node.left, node.right = arithmetic.boundaries(new_left)
        node.tree_id = tree_id
        await repository.create(session, node)
        await repository.refresh(session, reference, BOUNDARY_ATTRS)

    _lazy.debug(lambda: f"{operation}: inserted leaf tree={tree_id} [{node.left}, {node.right}]")
    return node


async def make_root(session: AsyncSession, node: Any) -> Any:
    """Make ``node`` the root of a tree.

    - transient: persisted as (1, 2) in a new tree (``max(tree_id) + 1``)
    - already a root: returned unchanged, nothing is written
    - any other persisted node: moved with its subtree into a new tree

    Returns:
        ``node``
    """
    repository = repository_for(type(node))

    if not is_persisted(node):
        _forget_pending(session, node)
        async with atomic(session, "make_root"):
            tree_id = await repository.next_tree_id(session)
            node.left, node.right = arithmetic.boundaries(1)
            node.tree_id = tree_id
            await repository.create(session, node)
        _lazy.debug(lambda: f"make_root: new tree {tree_id}")
        return node

    _attach(session, node)
    await repository.load_boundaries(session, node)
    if node.left == 1:
        return node

    await relocate_as_root(session, node)
    node.invalidate_children()
    return node


async def place_as_child(
    session: AsyncSession,
    node: Any,
    parent: Any,
    position: ChildPosition | str = ChildPosition.LAST,
) -> Any:
    """Place ``node`` as the first or last child of ``parent``.

    Args:
        session: Database session
        node: Transient node to insert, or persisted node to move
        parent: Persisted parent
        position: "first" or "last"

    Returns:
        ``node`` with its new boundaries

    Raises:
        InvalidPositionError: If position is not "first" or "last".
        InvalidParentError: If parent has not been persisted.
        InvalidHierarchyError: If parent is node itself or one of its descendants.
        StorageFailureError: If the backend fails; nothing is applied.
    """
    position = arithmetic.child_position(position)
    if not is_persisted(parent):
        raise InvalidParentError(type(parent).__name__)
    _attach(session, parent)
    parent.invalidate_children()
    operation = f"place_as_{position.value}_child"

    def left_for(reference: Any) -> int:
        return arithmetic.child_left(reference.left, reference.right, position)

    if not is_persisted(node):
        return await _insert_leaf(session, node, parent, left_for, operation=operation)

    _attach(session, node)
    await relocate(session, node, parent, left_for, operation=operation)
    node.invalidate_children()
    return node


async def place_as_sibling(
    session: AsyncSession,
    node: Any,
    sibling: Any,
    position: SiblingPosition | str = SiblingPosition.NEXT,
) -> Any:
    """Place ``node`` immediately before or after ``sibling``.

    Args:
        session: Database session
        node: Transient node to insert, or persisted node to move
        sibling: Persisted, non-root sibling
        position: "previous" or "next"

    Returns:
        ``node`` with its new boundaries

    Raises:
        InvalidPositionError: If position is not "previous" or "next".
        InvalidSiblingError: If sibling has not been persisted.
        InvalidHierarchyError: If sibling is a root, node itself, or one of
            node's descendants.
        StorageFailureError: If the backend fails; nothing is applied.
    """
    position = arithmetic.sibling_position(position)
    if not is_persisted(sibling):
        raise InvalidSiblingError(type(sibling).__name__)
    _attach(session, sibling)
    sibling.invalidate_children()
    operation = f"place_as_{position.value}_sibling"

    def left_for(reference: Any) -> int:
        return arithmetic.sibling_left(reference.left, reference.right, position)

    if not is_persisted(node):
        return await _insert_leaf(
            session, node, sibling, left_for, operation=operation, validate=_reject_root_sibling
        )

    _attach(session, node)
    await relocate(session, node, sibling, left_for, operation=operation, validate=_reject_root_sibling)
    node.invalidate_children()
    return node


async def place_as_first_child(session: AsyncSession, node: Any, parent: Any) -> Any:
    return await place_as_child(session, node, parent, ChildPosition.FIRST)


async def place_as_last_child(session: AsyncSession, node: Any, parent: Any) -> Any:
    return await place_as_child(session, node, parent, ChildPosition.LAST)


async def place_as_previous_sibling(session: AsyncSession, node: Any, sibling: Any) -> Any:
    return await place_as_sibling(session, node, sibling, SiblingPosition.PREVIOUS)


async def place_as_next_sibling(session: AsyncSession, node: Any, sibling: Any) -> Any:
    return await place_as_sibling(session, node, sibling, SiblingPosition.NEXT)


__all__ = [
    "is_persisted",
    "make_root",
    "place_as_child",
    "place_as_first_child",
    "place_as_last_child",
    "place_as_next_sibling",
    "place_as_previous_sibling",
    "place_as_sibling",
]
