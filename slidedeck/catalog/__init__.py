"""
Presentation catalog: durable store, derived in-memory index and the
catalog HTTP routes.
"""

from .index import CatalogIndex
from .store import CatalogError, CatalogStore

__all__ = ["CatalogError", "CatalogIndex", "CatalogStore"]
