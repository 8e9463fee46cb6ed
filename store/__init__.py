"""
Store Package

Collaborator interface for reference rows, documents and allocator state,
with an in-memory and a SQLite implementation.
"""

from .base import (
    StoreError,
    DocumentNotFound,
    AllocatorNotConfigured,
    CatalogScope,
    ReferenceStore,
)
from .memory import InMemoryStore
from .db import SqliteStore

__all__ = [
    "StoreError",
    "DocumentNotFound",
    "AllocatorNotConfigured",
    "CatalogScope",
    "ReferenceStore",
    "InMemoryStore",
    "SqliteStore",
]
