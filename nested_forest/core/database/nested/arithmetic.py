"""Boundary arithmetic for nested sets.

Pure functions, no I/O. Every placement computes the new ``left`` of a node
from its reference node's boundaries; ``right`` then follows from the width
of what is being inserted (1 for a fresh leaf, ``size`` for an existing
subtree).

Worked example, inserting X then Y under a lone root R(1, 2)::

    last child of R(1, 2)   -> X.left = R.right     = 2, X = (2, 3), R = (1, 4)
    first child of R(1, 4)  -> Y.left = R.left + 1  = 2, Y = (2, 3), X = (4, 5)
"""

from __future__ import annotations

from enum import StrEnum

from nested_forest.core.database.exceptions import InvalidPositionError

# Width (right - left) of a node without children
LEAF_SIZE = 1


class ChildPosition(StrEnum):
    """Where a node lands among its new parent's children."""

    FIRST = "first"
    LAST = "last"


class SiblingPosition(StrEnum):
    """Which side of the reference sibling a node lands on."""

    PREVIOUS = "previous"
    NEXT = "next"


def child_position(value: ChildPosition | str) -> ChildPosition:
    """Coerce ``value`` to a ChildPosition.

    Raises:
        InvalidPositionError: If value is not "first" or "last".
    """
    try:
        return ChildPosition(value)
    except ValueError:
        raise InvalidPositionError(value, tuple(p.value for p in ChildPosition)) from None


def sibling_position(value: SiblingPosition | str) -> SiblingPosition:
    """Coerce ``value`` to a SiblingPosition.

    Raises:
        InvalidPositionError: If value is not "previous" or "next".
    """
    try:
        return SiblingPosition(value)
    except ValueError:
        raise InvalidPositionError(value, tuple(p.value for p in SiblingPosition)) from None


def size(left: int, right: int) -> int:
    """Width of a node's range; 1 for a leaf."""
    return right - left


def child_left(parent_left: int, parent_right: int, position: ChildPosition) -> int:
    """Left boundary for a node placed as first or last child of a parent."""
    if position is ChildPosition.FIRST:
        return parent_left + 1
    return parent_right


def sibling_left(sibling_left_: int, sibling_right: int, position: SiblingPosition) -> int:
    """Left boundary for a node placed before or after a sibling."""
    if position is SiblingPosition.PREVIOUS:
        return sibling_left_
    return sibling_right + 1


def boundaries(left: int, width: int = LEAF_SIZE) -> tuple[int, int]:
    """(left, right) pair for a node of ``width`` starting at ``left``."""
    return left, left + width


def gap_width(node_size: int) -> int:
    """Boundary units a node of ``node_size`` occupies, i.e. its own two
    boundaries plus everything between them.

    A fresh leaf needs 2; detaching a subtree frees the same amount.
    """
    return node_size + 1


def park_delta(right: int) -> int:
    """Shift that moves a subtree ending at ``right`` to end at 0."""
    return -right


def parked_range(node_size: int) -> tuple[int, int]:
    """Inclusive ``left`` range a parked subtree of ``node_size`` occupies."""
    return -node_size, 0


def reinsert_delta(new_left: int, node_size: int) -> int:
    """Shift that lands a parked subtree's root at ``new_left``."""
    return new_left + node_size


__all__ = [
    "LEAF_SIZE",
    "ChildPosition",
    "SiblingPosition",
    "boundaries",
    "child_left",
    "child_position",
    "gap_width",
    "park_delta",
    "parked_range",
    "reinsert_delta",
    "sibling_left",
    "sibling_position",
    "size",
]
