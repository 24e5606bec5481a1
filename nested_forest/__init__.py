"""Nested-set forests on SQLAlchemy."""

__version__ = "0.1.0"
