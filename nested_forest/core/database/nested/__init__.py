"""Nested-set (MPTT) forests stored in one relational table.

Each row carries ``left``/``right`` boundaries and a ``tree_id``. A row's
descendants are exactly the rows of its tree whose boundaries fall strictly
inside its own, so subtree reads are a single range query and preorder is
``ORDER BY lft``.

Components:
    - arithmetic: Pure boundary computations
    - gaps: Opening and closing boundary gaps
    - placement: make_root and child/sibling placement
    - relocation: Atomic subtree moves (within or across trees)
    - reader: Depth-annotated subtree loading into children caches
    - loader: Bulk population from nested mappings
    - NestedSetMixin: The same operations as model methods

Example:
    >>> from nested_forest.core.models import Menu
    >>>
    >>> root = await Menu(name="Main").make_root(session)
    >>> x = await Menu(name="X").place_as_last_child(session, root)
    >>> y = await Menu(name="Y").place_as_first_child(session, root)
    >>> (root.left, root.right), (y.left, y.right), (x.left, x.right)
    ((1, 6), (2, 3), (4, 5))

Note:
    - Every mutation runs in one transaction (or SAVEPOINT) and locks the
      rows of the trees it touches
    - Boundary columns are named ``lft``/``rgt`` in the database
"""

from nested_forest.core.database.nested.arithmetic import ChildPosition, SiblingPosition
from nested_forest.core.database.nested.children import (
    EMPTY,
    UNLOADED,
    ChildrenState,
    Empty,
    Loaded,
    Unloaded,
)
from nested_forest.core.database.nested.gaps import close_gap, open_gap
from nested_forest.core.database.nested.placement import (
    make_root,
    place_as_child,
    place_as_first_child,
    place_as_last_child,
    place_as_next_sibling,
    place_as_previous_sibling,
    place_as_sibling,
)
from nested_forest.core.database.nested.reader import load_children
from nested_forest.core.database.nested.loader import ForestItem, build_forest
from nested_forest.core.database.nested.mixins import NestedSetMixin
from nested_forest.core.database.nested.repository import NestedSetRepository, repository_for
from nested_forest.core.database.nested.transaction import atomic

__all__ = [
    "EMPTY",
    "UNLOADED",
    "ChildPosition",
    "ChildrenState",
    "Empty",
    "ForestItem",
    "Loaded",
    "NestedSetMixin",
    "NestedSetRepository",
    "SiblingPosition",
    "Unloaded",
    "atomic",
    "build_forest",
    "close_gap",
    "load_children",
    "make_root",
    "open_gap",
    "place_as_child",
    "place_as_first_child",
    "place_as_last_child",
    "place_as_next_sibling",
    "place_as_previous_sibling",
    "place_as_sibling",
    "repository_for",
]
