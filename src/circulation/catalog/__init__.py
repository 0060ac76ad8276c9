"""Book catalog module."""

from .manager import CatalogManager

__all__ = ["CatalogManager"]
