"""Moving an existing subtree to a new position.

A move runs in three steps inside one atomic unit:

1. detach: shift the subtree to non-positive boundaries (it ends at 0) and
   close the gap it leaves behind
2. move_to_tree: when the destination is another tree, retag the parked rows
3. reinsert: open a gap at the destination and shift the parked rows into it

The steps are only consistent together, so they are private and reachable
solely through ``relocate`` and ``relocate_as_root``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from nested_forest.core.database.exceptions import InvalidHierarchyError
from nested_forest.core.database.nested import arithmetic
from nested_forest.core.database.nested.gaps import close_gap, open_gap
from nested_forest.core.database.nested.repository import BOUNDARY_ATTRS, repository_for
from nested_forest.core.database.nested.transaction import atomic

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from nested_forest.core.database.nested.repository import NestedSetRepository

logger = logging.getLogger(__name__)


async def _detach(session: AsyncSession, repository: NestedSetRepository[Any], node: Any) -> int:
    """Park ``node``'s subtree at [-size, 0] and compact its tree.

    Returns:
        The subtree's size
    """
    left, right, tree_id = node.left, node.right, node.tree_id
    node_size = arithmetic.size(left, right)

    await repository.shift_range(session, tree_id, left, right, arithmetic.park_delta(right))
    await close_gap(session, repository, tree_id, left, arithmetic.gap_width(node_size))
    return node_size


async def _move_to_tree(
    session: AsyncSession,
    repository: NestedSetRepository[Any],
    node: Any,
    node_size: int,
    tree_id: int,
) -> None:
    """Retag a parked subtree with ``tree_id``."""
    low, high = arithmetic.parked_range(node_size)
    await repository.assign_tree(
        session,
        tree_id,
        repository.tree_col == node.tree_id,
        repository.left_col.between(low, high),
    )


async def _reinsert(
    session: AsyncSession,
    repository: NestedSetRepository[Any],
    node_size: int,
    tree_id: int,
    new_left: int,
) -> None:
    """Shift a parked subtree so its root lands at ``new_left``."""
    await open_gap(session, repository, tree_id, new_left, arithmetic.gap_width(node_size))
    low, high = arithmetic.parked_range(node_size)
    await repository.shift_range(
        session,
        tree_id,
        low,
        high,
        arithmetic.reinsert_delta(new_left, node_size),
    )


def _contains(node: Any, other: Any) -> bool:
    """Whether ``other`` is ``node`` or one of its descendants."""
    return node.tree_id == other.tree_id and node.left <= other.left <= node.right


async def relocate(
    session: AsyncSession,
    node: Any,
    reference: Any,
    left_for: Callable[[Any], int],
    *,
    operation: str,
    validate: Callable[[Any], None] | None = None,
) -> Any:
    """Move ``node`` (with its subtree) next to or under ``reference``.

    Args:
        session: Database session
        node: Persisted node to move
        reference: Persisted parent or sibling
        left_for: Computes the destination ``left`` from the reference's
            boundaries, read after the node has been detached
        operation: Name used in logs and errors
        validate: Extra precondition on the locked reference, run before
            any write

    Returns:
        ``node`` with its new boundaries

    Raises:
        InvalidHierarchyError: If reference is node itself or inside its subtree.
        StorageFailureError: If the backend fails; the move is rolled back.
    """
    repository = repository_for(type(node))

    async with atomic(session, operation):
        await repository.lock_nodes(session, node, reference)

        if _contains(node, reference):
            raise InvalidHierarchyError(
                "Cannot move a node relative to itself or one of its descendants",
                details={
                    "operation": operation,
                    "tree_id": node.tree_id,
                    "left": node.left,
                    "right": node.right,
                    "reference_left": reference.left,
                },
            )
        if validate is not None:
            validate(reference)

        source_tree = node.tree_id
        node_size = await _detach(session, repository, node)

        await repository.refresh(session, reference, BOUNDARY_ATTRS)
        target_tree = reference.tree_id
        if target_tree != source_tree:
            await _move_to_tree(session, repository, node, node_size, target_tree)

        await _reinsert(session, repository, node_size, target_tree, left_for(reference))

    logger.debug(
        "Node relocated",
        extra={
            "operation": operation,
            "source_tree": source_tree,
            "target_tree": target_tree,
            "size": node_size,
        },
    )
    return node


async def relocate_as_root(session: AsyncSession, node: Any) -> Any:
    """Turn a persisted non-root ``node`` into the root of a brand-new tree.

    The old tree is compacted; the subtree keeps its shape, starting at 1.

    Raises:
        StorageFailureError: If the backend fails; the move is rolled back.
    """
    repository = repository_for(type(node))

    async with atomic(session, "make_root"):
        await repository.lock_nodes(session, node)

        source_tree = node.tree_id
        node_size = await _detach(session, repository, node)
        target_tree = await repository.next_tree_id(session)
        await _move_to_tree(session, repository, node, node_size, target_tree)
        await _reinsert(session, repository, node_size, target_tree, 1)

    logger.debug(
        "Node promoted to root",
        extra={"source_tree": source_tree, "target_tree": target_tree, "size": node_size},
    )
    return node


__all__ = [
    "relocate",
    "relocate_as_root",
]
