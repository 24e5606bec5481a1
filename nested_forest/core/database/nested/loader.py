"""Bulk population of a tree from nested mappings.

Input is a list of items, each a mapping with a name (under ``name``,
``label`` or ``id``) and an optional ``children`` list of items::

    [
        {"name": "Products", "children": [{"name": "Books"}, {"name": "Music"}]},
        {"name": "About"},
    ]

The whole input is validated before anything is written.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import delete

from nested_forest.core.database.exceptions import InvalidHierarchyError
from nested_forest.core.database.nested.placement import make_root, place_as_last_child
from nested_forest.core.database.nested.repository import BOUNDARY_ATTRS, repository_for
from nested_forest.core.database.nested.transaction import atomic
from nested_forest.core.settings import get_tree_settings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ForestItem(BaseModel):
    """One node of bulk-load input."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="ignore")

    name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("name", "label", "id"),
        description="Display name of the node",
    )
    children: list[ForestItem] = Field(default_factory=list)


def parse_items(items: Iterable[Mapping[str, Any] | ForestItem]) -> list[ForestItem]:
    """Validate raw input into ForestItem trees.

    Raises:
        InvalidHierarchyError: If an item has no usable name or malformed children.
    """
    try:
        return [item if isinstance(item, ForestItem) else ForestItem.model_validate(item) for item in items]
    except ValidationError as exc:
        raise InvalidHierarchyError(
            "Invalid bulk-load input",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def check_depth(items: Iterable[ForestItem], max_depth: int) -> None:
    """Reject input nested deeper than ``max_depth`` levels below the root.

    Walks the input iteratively, so pathological nesting cannot exhaust the
    interpreter stack before it is rejected.
    """
    stack: list[tuple[ForestItem, int]] = [(item, 1) for item in items]
    while stack:
        item, depth = stack.pop()
        if depth > max_depth:
            raise InvalidHierarchyError(
                "Bulk-load input is nested too deeply",
                details={"name": item.name, "depth": depth, "max_depth": max_depth},
            )
        stack.extend((child, depth + 1) for child in item.children)


async def _place_subtree(
    session: AsyncSession,
    parent: Any,
    item: ForestItem,
    node_factory: Callable[[str], Any],
) -> int:
    """Insert ``item`` and its descendants depth-first under ``parent``.

    Returns:
        Number of nodes created
    """
    node = await place_as_last_child(session, node_factory(item.name), parent)
    created = 1
    for child in item.children:
        created += await _place_subtree(session, node, child, node_factory)
    return created


async def build_forest(
    session: AsyncSession,
    model: type[Any],
    items: Iterable[Mapping[str, Any] | ForestItem],
    *,
    root_name: str | None = None,
    continue_on_error: bool | None = None,
    max_depth: int | None = None,
    clear_existing: bool = False,
    node_factory: Callable[[str], Any] | None = None,
) -> Any:
    """Create a root and insert ``items`` beneath it, in order.

    Each top-level item is inserted in its own atomic unit, so a failing
    item leaves the items before it in place.

    Args:
        session: Database session
        model: Nested-set model class to populate
        items: Item mappings (see module docstring)
        root_name: Name of the created root (TREE_ROOT_NAME by default)
        continue_on_error: Log and skip a failing top-level item instead of
            re-raising (TREE_CONTINUE_ON_ERROR by default)
        max_depth: Deepest nesting accepted (TREE_MAX_BUILD_DEPTH by default)
        clear_existing: Delete every row of ``model`` first
        node_factory: Builds a transient node from a name
            (``model(name=...)`` by default)

    Returns:
        The new root node

    Raises:
        InvalidHierarchyError: If the input is malformed or too deep; nothing
            is written.
    """
    settings = get_tree_settings()
    root_name = root_name or settings.root_name
    continue_on_error = settings.continue_on_error if continue_on_error is None else continue_on_error
    max_depth = settings.max_build_depth if max_depth is None else max_depth

    def default_factory(name: str) -> Any:
        return model(name=name)

    factory = node_factory or default_factory
    forest = parse_items(items)
    check_depth(forest, max_depth)

    if clear_existing:
        async with atomic(session, "build_forest.clear"):
            await session.execute(delete(model).execution_options(synchronize_session=False))
        session.expunge_all()

    root = await make_root(session, factory(root_name))
    repository = repository_for(model)

    created = 1
    failed = 0
    for index, item in enumerate(forest):
        try:
            async with atomic(session, "build_forest"):
                created += await _place_subtree(session, root, item, factory)
        except Exception:
            failed += 1
            logger.exception(
                "Failed to load top-level item",
                extra={"index": index, "item_name": item.name, "continue_on_error": continue_on_error},
            )
            if not continue_on_error:
                raise
            await repository.refresh(session, root, BOUNDARY_ATTRS)

    root.invalidate_children()
    logger.info(
        "Forest loaded",
        extra={
            "model": model.__name__,
            "tree_id": root.tree_id,
            "nodes_created": created,
            "failed_items": failed,
        },
    )
    return root


__all__ = [
    "ForestItem",
    "build_forest",
    "check_depth",
    "parse_items",
]
