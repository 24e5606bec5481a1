"""Shared fixtures and helpers for integration tests.

This module provides:
- A statement recorder for asserting which SQL an operation issued
- Boundary snapshots read straight from the database
- A forest invariant checker
- A small tree builder
"""

from __future__ import annotations

from collections import defaultdict
from itertools import combinations
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import event, select

from nested_forest.core.database.nested import make_root, place_as_last_child
from nested_forest.core.models import Menu

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


WRITE_PREFIXES = ("INSERT", "UPDATE", "DELETE")


@pytest.fixture
def statements(db_engine: AsyncEngine) -> list[str]:
    """Record every SQL statement sent to the test database.

    Example:
        async def test_no_writes(db_session, statements):
            statements.clear()
            ...
            assert not writes(statements)
    """
    recorded: list[str] = []

    def _record(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: Any) -> None:
        _ = conn, cursor, parameters, context, executemany
        recorded.append(statement)

    event.listen(db_engine.sync_engine, "before_cursor_execute", _record)
    yield recorded
    event.remove(db_engine.sync_engine, "before_cursor_execute", _record)


def writes(statements: list[str]) -> list[str]:
    """Statements that modify data."""
    return [s for s in statements if s.lstrip().upper().startswith(WRITE_PREFIXES)]


async def bounds(session: AsyncSession, node: Menu) -> tuple[int, int, int]:
    """(left, right, tree_id) of ``node`` as stored in the database."""
    result = await session.execute(select(Menu.left, Menu.right, Menu.tree_id).where(Menu.id == node.id))
    left, right, tree_id = result.one()
    return left, right, tree_id


async def snapshot(session: AsyncSession) -> dict[str, tuple[int, int, int]]:
    """Name -> (left, right, tree_id) for every stored row."""
    result = await session.execute(select(Menu.name, Menu.left, Menu.right, Menu.tree_id))
    return {name: (left, right, tree_id) for name, left, right, tree_id in result.all()}


async def assert_forest_valid(session: AsyncSession) -> None:
    """Check every tree in the table is a well-formed nested set.

    Validates per tree:
    - boundaries are exactly 1..2n, each used once
    - exactly one row has left == 1, and it spans the whole tree
    - any two ranges are disjoint or properly nested
    """
    result = await session.execute(select(Menu.name, Menu.left, Menu.right, Menu.tree_id))
    trees: dict[int, list[tuple[str, int, int]]] = defaultdict(list)
    for name, left, right, tree_id in result.all():
        trees[tree_id].append((name, left, right))

    for tree_id, rows in trees.items():
        count = len(rows)
        boundaries = sorted([left for _, left, _ in rows] + [right for _, _, right in rows])
        assert boundaries == list(range(1, 2 * count + 1)), f"tree {tree_id}: {sorted(rows, key=lambda r: r[1])}"

        roots = [row for row in rows if row[1] == 1]
        assert len(roots) == 1, f"tree {tree_id} has roots {roots}"
        assert roots[0][2] == 2 * count

        for (name_a, left_a, right_a), (name_b, left_b, right_b) in combinations(rows, 2):
            assert left_a < right_a and left_b < right_b
            disjoint = right_a < left_b or right_b < left_a
            nested = (left_a < left_b and right_b < right_a) or (left_b < left_a and right_a < right_b)
            assert disjoint or nested, f"tree {tree_id}: {name_a} and {name_b} overlap"


async def build_tree(session: AsyncSession, shape: dict[str, Any]) -> dict[str, Menu]:
    """Create one tree from ``{"name": ..., "children": [...]}``, depth-first.

    Returns:
        Name -> Menu for every created node
    """
    nodes: dict[str, Menu] = {}

    async def _add(item: dict[str, Any], parent: Menu | None) -> None:
        node = Menu(name=item["name"])
        if parent is None:
            await make_root(session, node)
        else:
            await place_as_last_child(session, node, parent)
        nodes[item["name"]] = node
        for child in item.get("children", []):
            await _add(child, node)

    await _add(shape, None)
    return nodes
