"""Loading a node's subtree into its children caches.

One query fetches every descendant with its relative depth; a single pass
over the ``left``-ordered rows then rebuilds the parent/child links and fills
the children cache of the queried node and of every fetched row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from nested_forest.core.database.exceptions import (
    InvalidLimitError,
    NotPersistedError,
    StorageFailureError,
)
from nested_forest.core.database.nested.children import EMPTY, Empty, Loaded, resolve_states
from nested_forest.core.database.nested.placement import is_persisted
from nested_forest.core.database.nested.repository import repository_for
from nested_forest.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

_lazy = get_lazy_logger(__name__)


async def load_children(
    session: AsyncSession,
    node: Any,
    limit: int | None = None,
) -> list[Any]:
    """Return ``node``'s children, fetching its subtree if not cached.

    Args:
        session: Database session
        node: Persisted node
        limit: Deepest level to fetch below ``node`` (1 = children only,
            None = whole subtree). Rows at the limit keep an unloaded cache.

    Returns:
        The children in sibling order; each child's own ``children`` is
        already populated down to ``limit``

    Raises:
        NotPersistedError: If node has never been persisted.
        InvalidLimitError: If limit is less than 1.
        StorageFailureError: If the query fails.
    """
    state = node.children
    if isinstance(state, Empty):
        return []
    if isinstance(state, Loaded):
        return list(state.nodes)

    if not is_persisted(node):
        raise NotPersistedError(type(node).__name__, "load_children")
    if limit is not None and limit < 1:
        raise InvalidLimitError(limit)

    repository = repository_for(type(node))
    try:
        await repository.load_boundaries(session, node)
        results = await repository.select_descendants(session, node, limit)
    except SQLAlchemyError as exc:
        raise StorageFailureError("load_children", exc) from exc

    if not results:
        node._set_children_state(EMPTY)
        return []

    rows = [row for row, _ in results]
    depths = [depth for _, depth in results]
    top, states = resolve_states(rows, depths, limit)

    for row, row_state in zip(rows, states, strict=True):
        row._set_children_state(row_state)
    node._set_children_state(Loaded(top))

    _lazy.debug(
        lambda: f"load_children: {type(node).__name__} tree={node.tree_id} -> {len(top)} children, {len(rows)} rows"
    )
    return list(top)


__all__ = [
    "load_children",
]
