"""
Local store layer.

The local store is the single source of truth for every reader; remote
pages only ever reach consumers after being merged into it.
"""

from .base import InvalidationListener, LocalStore, StoreTransaction
from .sqlite import SQLiteNoteStore, SQLiteStoreConfig

__all__ = [
    "LocalStore",
    "StoreTransaction",
    "InvalidationListener",
    "SQLiteNoteStore",
    "SQLiteStoreConfig",
]
