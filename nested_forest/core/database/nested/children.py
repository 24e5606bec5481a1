"""Children cache states and the single-pass tree assembly.

A node's children cache is one of three states:

- ``Unloaded``: never fetched (or invalidated by a mutation)
- ``Empty``: fetched, and the node is a leaf
- ``Loaded(nodes)``: fetched, ordered by ``left``

Assembly works over an arena: the flat, ``left``-ordered rows are kept in
one list and the tree is expressed as lists of indices into it, so no row is
ever referenced from two places while the structure is being built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nested_forest.core.database.exceptions import InvalidHierarchyError

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True, slots=True)
class Unloaded:
    """Children have not been fetched."""


@dataclass(frozen=True, slots=True)
class Empty:
    """Children were fetched and there are none."""


@dataclass(frozen=True, slots=True)
class Loaded[T]:
    """Children were fetched; ``nodes`` holds them in sibling order."""

    nodes: tuple[T, ...]


type ChildrenState[T] = Unloaded | Empty | Loaded[T]

UNLOADED = Unloaded()
EMPTY = Empty()


@dataclass(slots=True)
class Assembly:
    """Index-based tree over a flat row list.

    Attributes:
        top: Indices of rows directly under the queried node
        children: ``children[i]`` lists the indices of row i's children
    """

    top: list[int] = field(default_factory=list)
    children: list[list[int]] = field(default_factory=list)


def assemble(depths: Sequence[int]) -> Assembly:
    """Rebuild parent/child links from preorder depths in one pass.

    ``depths[i]`` is the depth of row i relative to the queried node
    (immediate children are 1). Rows must be in preorder (ascending
    ``left``), so a row is never more than one level deeper than the row
    before it.

    Raises:
        InvalidHierarchyError: If the depth sequence is not a preorder walk.
    """
    assembly = Assembly(children=[[] for _ in depths])
    stack: list[int] = []

    for index, depth in enumerate(depths):
        # Close every subtree this row is not part of
        while stack and depths[stack[-1]] >= depth:
            stack.pop()

        expected_max = (depths[stack[-1]] if stack else 0) + 1
        if depth > expected_max:
            raise InvalidHierarchyError(
                "Rows are not in preorder",
                details={"row": index, "depth": depth, "max_depth": expected_max},
            )

        if stack:
            assembly.children[stack[-1]].append(index)
        else:
            assembly.top.append(index)
        stack.append(index)

    return assembly


def resolve_states[T](
    rows: Sequence[T],
    depths: Sequence[int],
    limit: int | None = None,
) -> tuple[tuple[T, ...], list[ChildrenState[T]]]:
    """Assemble ``rows`` and compute every row's children cache.

    A row with no children becomes ``Empty``, except when it sits at the
    depth ``limit``: its children were cut off by the query, not absent, so
    it stays ``Unloaded``.

    Returns:
        The top-level rows, and one ChildrenState per row (same order as rows)
    """
    assembly = assemble(depths)
    states: list[ChildrenState[T]] = []

    for index, child_indices in enumerate(assembly.children):
        if child_indices:
            states.append(Loaded(tuple(rows[i] for i in child_indices)))
        elif limit is not None and depths[index] >= limit:
            states.append(UNLOADED)
        else:
            states.append(EMPTY)

    return tuple(rows[i] for i in assembly.top), states


__all__ = [
    "EMPTY",
    "UNLOADED",
    "Assembly",
    "ChildrenState",
    "Empty",
    "Loaded",
    "Unloaded",
    "assemble",
    "resolve_states",
]
