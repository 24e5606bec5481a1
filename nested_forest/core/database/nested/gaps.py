"""Opening and closing boundary gaps inside one tree.

Both operations are two bulk UPDATEs, one per boundary column, run as a
single atomic unit. Rows with non-positive boundaries (a subtree parked
during a move) are never matched, since ``start`` is always at least 1.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from nested_forest.core.database.exceptions import InvalidPositionError
from nested_forest.core.database.nested.transaction import atomic
from nested_forest.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from nested_forest.core.database.nested.repository import NestedSetRepository

_lazy = get_lazy_logger(__name__)


def _check_width(width: int) -> None:
    if width <= 0:
        raise InvalidPositionError(width)


async def open_gap(
    session: AsyncSession,
    repository: NestedSetRepository[Any],
    tree_id: int,
    start: int,
    width: int,
) -> None:
    """Make room for ``width`` boundary units at ``start``.

    Every boundary in ``tree_id`` at or beyond ``start`` moves up by
    ``width``, which leaves [start, start + width - 1] free.

    Raises:
        InvalidPositionError: If width is not positive.
        StorageFailureError: If the backend fails; nothing is applied.
    """
    _check_width(width)
    async with atomic(session, "open_gap"):
        await repository.shift(
            session,
            repository.left_col,
            width,
            repository.tree_col == tree_id,
            repository.left_col >= start,
        )
        await repository.shift(
            session,
            repository.right_col,
            width,
            repository.tree_col == tree_id,
            repository.right_col >= start,
        )
    _lazy.debug(lambda: f"open_gap: tree={tree_id} start={start} width={width}")


async def close_gap(
    session: AsyncSession,
    repository: NestedSetRepository[Any],
    tree_id: int,
    start: int,
    width: int,
) -> None:
    """Collapse ``width`` unused boundary units at ``start``.

    The inverse of open_gap: every boundary in ``tree_id`` at or beyond
    ``start`` moves down by ``width``. The caller guarantees no row still
    occupies [start, start + width - 1].

    Raises:
        InvalidPositionError: If width is not positive.
        StorageFailureError: If the backend fails; nothing is applied.
    """
    _check_width(width)
    async with atomic(session, "close_gap"):
        await repository.shift(
            session,
            repository.left_col,
            -width,
            repository.tree_col == tree_id,
            repository.left_col >= start,
        )
        await repository.shift(
            session,
            repository.right_col,
            -width,
            repository.tree_col == tree_id,
            repository.right_col >= start,
        )
    _lazy.debug(lambda: f"close_gap: tree={tree_id} start={start} width={width}")


__all__ = [
    "close_gap",
    "open_gap",
]
