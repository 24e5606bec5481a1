"""Menu database model."""
from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from nested_forest.core.database import Base, IntegerPKMixin, NestedSetMixin, TimestampMixin


class Menu(Base, IntegerPKMixin, TimestampMixin, NestedSetMixin):
    """Navigation menu entry.

    Each menu is one tree: the root is the menu itself, its descendants
    are the entries in display order.
    """

    __tablename__ = "menus"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Menu(id={self.id}, name={self.name!r}, tree={self.tree_id}, [{self.left}, {self.right}])>"
