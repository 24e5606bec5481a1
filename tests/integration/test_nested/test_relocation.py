"""Integration tests for moving persisted subtrees."""
from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from nested_forest.core.database.exceptions import InvalidHierarchyError, StorageFailureError
from nested_forest.core.database.nested import (
    UNLOADED,
    NestedSetRepository,
    make_root,
    place_as_first_child,
    place_as_last_child,
    place_as_next_sibling,
    place_as_previous_sibling,
)
from nested_forest.core.models import Menu
from nested_forest.core.settings import clear_all_caches
from tests.integration.conftest import assert_forest_valid, build_tree, snapshot

pytestmark = pytest.mark.integration

SHAPE = {
    "name": "R",
    "children": [
        {"name": "A", "children": [{"name": "A1"}]},
        {"name": "B", "children": [{"name": "B1"}, {"name": "B2"}]},
        {"name": "C"},
    ],
}


@pytest.fixture
async def tree(db_session):
    """R -> [A -> [A1], B -> [B1, B2], C] in tree 1."""
    return await build_tree(db_session, SHAPE)


async def test_initial_shape(db_session, tree):
    assert await snapshot(db_session) == {
        "R": (1, 14, 1),
        "A": (2, 5, 1),
        "A1": (3, 4, 1),
        "B": (6, 11, 1),
        "B1": (7, 8, 1),
        "B2": (9, 10, 1),
        "C": (12, 13, 1),
    }


# ============================================================================
# Moves within one tree
# ============================================================================


async def test_move_into_later_sibling(db_session, tree):
    """A (with A1) becomes the last child of C."""
    await place_as_last_child(db_session, tree["A"], tree["C"])

    assert await snapshot(db_session) == {
        "R": (1, 14, 1),
        "B": (2, 7, 1),
        "B1": (3, 4, 1),
        "B2": (5, 6, 1),
        "C": (8, 13, 1),
        "A": (9, 12, 1),
        "A1": (10, 11, 1),
    }
    assert (tree["A"].left, tree["A"].right) == (9, 12)
    await assert_forest_valid(db_session)


async def test_move_before_earlier_sibling(db_session, tree):
    await place_as_previous_sibling(db_session, tree["C"], tree["A"])

    assert await snapshot(db_session) == {
        "R": (1, 14, 1),
        "C": (2, 3, 1),
        "A": (4, 7, 1),
        "A1": (5, 6, 1),
        "B": (8, 13, 1),
        "B1": (9, 10, 1),
        "B2": (11, 12, 1),
    }


async def test_move_grandchild_up_to_first_child_of_root(db_session, tree):
    await place_as_first_child(db_session, tree["B2"], tree["R"])

    assert await snapshot(db_session) == {
        "R": (1, 14, 1),
        "B2": (2, 3, 1),
        "A": (4, 7, 1),
        "A1": (5, 6, 1),
        "B": (8, 11, 1),
        "B1": (9, 10, 1),
        "C": (12, 13, 1),
    }


async def test_reinsert_at_original_position_restores_boundaries(db_session, tree):
    """Moving B to where it already is leaves every row as it was."""
    before = await snapshot(db_session)

    await place_as_next_sibling(db_session, tree["B"], tree["A"])

    assert await snapshot(db_session) == before


async def test_move_away_and_back_restores_boundaries(db_session, tree):
    before = await snapshot(db_session)

    await place_as_last_child(db_session, tree["B"], tree["C"])
    await place_as_next_sibling(db_session, tree["B"], tree["A"])

    assert await snapshot(db_session) == before


# ============================================================================
# Moves across trees
# ============================================================================


async def test_cross_tree_move(db_session, tree):
    """Move B (width 5) under Q in a second tree.

    Validates:
    - tree 1 is compacted by 6 at B's old position
    - tree 2 is expanded by 6 at the insertion point
    - B keeps its children, in order, one level below it
    """
    other = await build_tree(db_session, {"name": "R2", "children": [{"name": "Q"}]})
    assert tree["B"].size == 5

    await place_as_last_child(db_session, tree["B"], other["Q"])

    assert await snapshot(db_session) == {
        "R": (1, 8, 1),
        "A": (2, 5, 1),
        "A1": (3, 4, 1),
        "C": (6, 7, 1),
        "R2": (1, 10, 2),
        "Q": (2, 9, 2),
        "B": (3, 8, 2),
        "B1": (4, 5, 2),
        "B2": (6, 7, 2),
    }
    assert tree["B"].tree_id == 2
    await assert_forest_valid(db_session)


async def test_root_moved_under_other_tree(db_session, tree):
    """A whole tree can be grafted into another one."""
    other = await build_tree(db_session, {"name": "R2", "children": [{"name": "Q"}]})

    await place_as_last_child(db_session, other["R2"], tree["C"])

    result = await snapshot(db_session)
    assert result["C"] == (12, 17, 1)
    assert result["R2"] == (13, 16, 1)
    assert result["Q"] == (14, 15, 1)
    assert result["R"] == (1, 18, 1)
    await assert_forest_valid(db_session)


async def test_moved_node_starts_with_unloaded_cache(db_session, tree):
    children = await tree["B"].load_children(db_session)
    assert [c.name for c in children] == ["B1", "B2"]

    await place_as_last_child(db_session, tree["B"], tree["C"])

    assert tree["B"].children is UNLOADED
    assert tree["C"].children is UNLOADED
    assert [c.name for c in await tree["B"].load_children(db_session)] == ["B1", "B2"]


# ============================================================================
# Rejected moves
# ============================================================================


@pytest.mark.parametrize(
    ("node", "target"),
    [("B", "B"), ("B", "B1"), ("R", "A1")],
)
async def test_cycles_are_rejected(db_session, tree, node, target):
    before = await snapshot(db_session)

    with pytest.raises(InvalidHierarchyError):
        await place_as_last_child(db_session, tree[node], tree[target])

    assert await snapshot(db_session) == before


async def test_sibling_of_descendant_is_rejected(db_session, tree):
    with pytest.raises(InvalidHierarchyError):
        await place_as_next_sibling(db_session, tree["B"], tree["B2"])


async def test_persisted_node_cannot_become_sibling_of_root(db_session, tree):
    before = await snapshot(db_session)
    other = await make_root(db_session, Menu(name="R2"))

    with pytest.raises(InvalidHierarchyError):
        await place_as_previous_sibling(db_session, tree["C"], other)

    after = await snapshot(db_session)
    assert {name: after[name] for name in before} == before


async def test_storage_failure_rolls_back_whole_move(db_session, tree, monkeypatch):
    """A backend error in the middle of a move leaves no trace."""
    other = await build_tree(db_session, {"name": "R2", "children": [{"name": "Q"}]})
    before = await snapshot(db_session)

    async def failing_assign_tree(self, session, tree_id, *criteria):
        raise OperationalError("UPDATE menus SET tree_id", {}, Exception("disk I/O error"))

    monkeypatch.setattr(NestedSetRepository, "assign_tree", failing_assign_tree)

    with pytest.raises(StorageFailureError) as exc_info:
        await place_as_last_child(db_session, tree["B"], other["Q"])

    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert await snapshot(db_session) == before


# ============================================================================
# Lock ordering
# ============================================================================


def record_locking(monkeypatch) -> list[tuple[str, object]]:
    """Record tree locks and boundary reloads, in call order."""
    events: list[tuple[str, object]] = []
    original_lock_trees = NestedSetRepository.lock_trees
    original_refresh = NestedSetRepository.refresh

    async def lock_trees(self, session, *tree_ids):
        events.append(("lock", tuple(sorted(set(tree_ids)))))
        await original_lock_trees(self, session, *tree_ids)

    async def refresh(self, session, instance, attribute_names=None):
        events.append(("read", instance.name))
        return await original_refresh(self, session, instance, attribute_names)

    monkeypatch.setattr(NestedSetRepository, "lock_trees", lock_trees)
    monkeypatch.setattr(NestedSetRepository, "refresh", refresh)
    return events


async def test_cross_tree_move_locks_both_trees_before_reading_boundaries(db_session, tree, monkeypatch):
    """Both trees are locked in one ordered statement; boundaries are re-read under it."""
    other = await build_tree(db_session, {"name": "R2", "children": [{"name": "Q"}]})
    events = record_locking(monkeypatch)

    await place_as_last_child(db_session, other["Q"], tree["B1"])

    assert events[:5] == [
        ("read", "Q"),
        ("read", "B1"),
        ("lock", (1, 2)),
        ("read", "Q"),
        ("read", "B1"),
    ]
    assert [e for e in events if e[0] == "lock"] == [("lock", (1, 2))]
    await assert_forest_valid(db_session)


async def test_leaf_insert_locks_tree_before_reading_parent(db_session, tree, monkeypatch):
    events = record_locking(monkeypatch)

    await place_as_last_child(db_session, Menu(name="D"), tree["C"])

    assert events[:3] == [("read", "C"), ("lock", (1,)), ("read", "C")]


async def test_row_locking_can_be_disabled(db_session, tree, monkeypatch):
    monkeypatch.setenv("TREE_LOCK_ROWS", "false")
    clear_all_caches()
    events = record_locking(monkeypatch)

    await place_as_first_child(db_session, tree["C"], tree["A"])

    assert ("lock", (1,)) not in events
    await assert_forest_valid(db_session)
