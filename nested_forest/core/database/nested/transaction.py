"""Atomic execution of multi-statement tree mutations.

A tree mutation is several bulk UPDATEs that are only consistent as a
whole. ``atomic`` runs them as one unit: a SAVEPOINT when the caller already
has a transaction open, otherwise a transaction of its own that commits on
exit. Any exception rolls the unit back; backend errors surface as
StorageFailureError with the original exception chained.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from nested_forest.core.database.exceptions import StorageFailureError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """Run the enclosed statements as one all-or-nothing unit.

    Args:
        session: Database session
        operation: Name used in logs and in StorageFailureError

    Yields:
        The same session

    Raises:
        StorageFailureError: If the backend fails; the unit is rolled back.

    Example:
        async with atomic(session, "open_gap"):
            await session.execute(shift_lefts)
            await session.execute(shift_rights)
    """
    try:
        if session.in_transaction():
            async with session.begin_nested():
                yield session
        else:
            async with session.begin():
                yield session
    except SQLAlchemyError as exc:
        logger.warning(
            "Tree operation rolled back",
            extra={"operation": operation, "error": str(exc)},
        )
        raise StorageFailureError(operation, exc) from exc


__all__ = [
    "atomic",
]
