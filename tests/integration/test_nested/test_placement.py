"""Integration tests for root creation and child/sibling placement."""
from __future__ import annotations

import pytest

from nested_forest.core.database.exceptions import (
    InvalidHierarchyError,
    InvalidParentError,
    InvalidPositionError,
    InvalidSiblingError,
)
from nested_forest.core.database.nested import (
    UNLOADED,
    make_root,
    place_as_child,
    place_as_first_child,
    place_as_last_child,
    place_as_next_sibling,
    place_as_previous_sibling,
    place_as_sibling,
)
from nested_forest.core.models import Menu
from tests.integration.conftest import assert_forest_valid, bounds, build_tree, snapshot, writes

pytestmark = pytest.mark.integration


# ============================================================================
# make_root
# ============================================================================


async def test_make_root_creates_first_tree(db_session):
    """A transient node becomes (1, 2) in tree 1 of an empty table."""
    root = await make_root(db_session, Menu(name="Main"))

    assert root.id is not None
    assert (root.left, root.right, root.tree_id) == (1, 2, 1)
    assert await bounds(db_session, root) == (1, 2, 1)
    assert root.is_root
    assert root.size == 1


async def test_make_root_allocates_next_tree_id(db_session):
    first = await make_root(db_session, Menu(name="Main"))
    second = await make_root(db_session, Menu(name="Footer"))

    assert first.tree_id == 1
    assert second.tree_id == 2
    assert await bounds(db_session, second) == (1, 2, 2)


async def test_make_root_on_root_issues_no_writes(db_session, statements):
    """Calling make_root on an existing root returns it unchanged."""
    root = await make_root(db_session, Menu(name="Main"))
    await place_as_last_child(db_session, Menu(name="About"), root)
    before = await snapshot(db_session)
    statements.clear()

    result = await make_root(db_session, root)

    assert result is root
    assert writes(statements) == []
    assert await snapshot(db_session) == before


async def test_make_root_promotes_subtree_to_new_tree(db_session):
    nodes = await build_tree(
        db_session,
        {"name": "R", "children": [{"name": "A", "children": [{"name": "A1"}]}, {"name": "B"}]},
    )

    await make_root(db_session, nodes["A"])

    assert await snapshot(db_session) == {
        "R": (1, 4, 1),
        "B": (2, 3, 1),
        "A": (1, 4, 2),
        "A1": (2, 3, 2),
    }
    assert (nodes["A"].left, nodes["A"].right, nodes["A"].tree_id) == (1, 4, 2)
    await assert_forest_valid(db_session)


async def test_make_root_accepts_pending_node(db_session):
    node = Menu(name="Main")
    db_session.add(node)

    await make_root(db_session, node)

    assert await bounds(db_session, node) == (1, 2, 1)


# ============================================================================
# Children
# ============================================================================


async def test_concrete_scenario(db_session):
    """Last child X, then first child Y, of a lone root.

    Validates:
    - X lands at (2, 3) and the root grows to (1, 4)
    - Y lands at (2, 3), X shifts to (4, 5), the root grows to (1, 6)
    - in-memory boundaries match the database after each step
    """
    root = await make_root(db_session, Menu(name="Root"))
    assert (root.left, root.right, root.tree_id) == (1, 2, 1)

    x = await place_as_last_child(db_session, Menu(name="X"), root)
    assert (x.left, x.right) == (2, 3)
    assert (root.left, root.right) == (1, 4)
    assert await bounds(db_session, x) == (2, 3, 1)
    assert await bounds(db_session, root) == (1, 4, 1)

    y = await place_as_first_child(db_session, Menu(name="Y"), root)
    assert (y.left, y.right) == (2, 3)
    assert (x.left, x.right) == (4, 5)
    assert (root.left, root.right) == (1, 6)
    assert await snapshot(db_session) == {"Root": (1, 6, 1), "Y": (2, 3, 1), "X": (4, 5, 1)}


async def test_children_inherit_parent_tree(db_session):
    await make_root(db_session, Menu(name="Main"))
    footer = await make_root(db_session, Menu(name="Footer"))

    legal = await place_as_last_child(db_session, Menu(name="Legal"), footer)

    assert legal.tree_id == footer.tree_id == 2
    assert await snapshot(db_session) == {
        "Main": (1, 2, 1),
        "Footer": (1, 4, 2),
        "Legal": (2, 3, 2),
    }


async def test_place_as_child_accepts_string_position(db_session):
    root = await make_root(db_session, Menu(name="Root"))
    await place_as_child(db_session, Menu(name="B"), root, "last")
    await place_as_child(db_session, Menu(name="A"), root, "first")

    assert await snapshot(db_session) == {"Root": (1, 6, 1), "A": (2, 3, 1), "B": (4, 5, 1)}


async def test_grandchild_widens_every_ancestor(db_session):
    nodes = await build_tree(db_session, {"name": "R", "children": [{"name": "A"}, {"name": "B"}]})

    await place_as_last_child(db_session, Menu(name="A1"), nodes["A"])

    assert await snapshot(db_session) == {
        "R": (1, 8, 1),
        "A": (2, 5, 1),
        "A1": (3, 4, 1),
        "B": (6, 7, 1),
    }


# ============================================================================
# Siblings
# ============================================================================


async def test_previous_and_next_sibling(db_session):
    root = await make_root(db_session, Menu(name="Root"))
    a = await place_as_last_child(db_session, Menu(name="A"), root)

    await place_as_next_sibling(db_session, Menu(name="B"), a)
    await place_as_previous_sibling(db_session, Menu(name="C"), a)

    assert await snapshot(db_session) == {
        "Root": (1, 8, 1),
        "C": (2, 3, 1),
        "A": (4, 5, 1),
        "B": (6, 7, 1),
    }
    await assert_forest_valid(db_session)


async def test_next_sibling_lands_after_sibling_subtree(db_session):
    nodes = await build_tree(db_session, {"name": "R", "children": [{"name": "A", "children": [{"name": "A1"}]}]})

    await place_as_sibling(db_session, Menu(name="B"), nodes["A"], "next")

    assert await snapshot(db_session) == {
        "R": (1, 8, 1),
        "A": (2, 5, 1),
        "A1": (3, 4, 1),
        "B": (6, 7, 1),
    }


async def test_sibling_of_root_is_rejected(db_session):
    root = await make_root(db_session, Menu(name="Root"))
    node = Menu(name="Second")

    with pytest.raises(InvalidHierarchyError):
        await place_as_next_sibling(db_session, node, root)

    assert not node.is_persisted
    assert await snapshot(db_session) == {"Root": (1, 2, 1)}


# ============================================================================
# Preconditions
# ============================================================================


async def test_invalid_child_position(db_session, statements):
    root = await make_root(db_session, Menu(name="Root"))
    statements.clear()

    with pytest.raises(InvalidPositionError):
        await place_as_child(db_session, Menu(name="X"), root, "next")

    assert statements == []


async def test_invalid_sibling_position(db_session):
    nodes = await build_tree(db_session, {"name": "R", "children": [{"name": "A"}]})

    with pytest.raises(InvalidPositionError):
        await place_as_sibling(db_session, Menu(name="X"), nodes["A"], "first")


async def test_transient_parent_is_rejected(db_session, statements):
    statements.clear()

    with pytest.raises(InvalidParentError):
        await place_as_last_child(db_session, Menu(name="X"), Menu(name="Unsaved"))

    assert statements == []


async def test_transient_sibling_is_rejected(db_session):
    with pytest.raises(InvalidSiblingError):
        await place_as_previous_sibling(db_session, Menu(name="X"), Menu(name="Unsaved"))


async def test_placement_resets_parent_children_cache(db_session):
    root = await make_root(db_session, Menu(name="Root"))
    assert await root.load_children(db_session) == []

    await place_as_last_child(db_session, Menu(name="X"), root)

    assert root.children is UNLOADED
    assert [c.name for c in await root.load_children(db_session)] == ["X"]
