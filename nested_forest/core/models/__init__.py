"""Database models package.

Import all models here so ``Base.metadata`` knows every table.
"""

from __future__ import annotations

from .menu import Menu

__all__ = [
    "Menu",
]
