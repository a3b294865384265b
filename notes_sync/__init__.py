"""
Notes Sync

Offline-first paged notes: a local SQLite cache kept in step with a
remotely paginated notes API.

Provides:
- Local store with atomic merges and generation-based invalidation
- Sync mediator that fetches remote pages and merges them atomically
- Pager that serves growing windows and single-flights remote loads
- Simulated and HTTP (aiohttp) remote sources

Usage:

    >>> from notes_sync import NoteRepository, SimulatedNoteApi, SQLiteNoteStore
    >>> store = await SQLiteNoteStore.create()
    >>> repository = NoteRepository(store, SimulatedNoteApi(latency=0))
    >>> async with repository.open() as stream:
    ...     window = stream.current_window()
    ...     window = await stream.access(len(window) - 1)
    ...     print([note.title for note in window.items])
"""

from .exceptions import (
    FetchError,
    InvalidatedError,
    NotesSyncError,
    StorageConnectionError,
    StoreError,
    StreamClosedError,
    ValidationError,
)
from .models import Note, NoteEntity, PageCursor, to_domain
from .paging import (
    CombinedLoadStates,
    InitializeAction,
    LoadResult,
    LoadState,
    LoadStatus,
    LoadType,
    MediatorResult,
    Pager,
    PagingConfig,
    PagingStream,
    SyncMediator,
    Window,
    WindowedReader,
)
from .remote import HttpNoteSource, HttpSourceConfig, RemoteSource, SimulatedNoteApi
from .repository import NoteRepository
from .settings import Settings
from .store import LocalStore, SQLiteNoteStore, SQLiteStoreConfig, StoreTransaction

__all__ = [
    # Models
    "NoteEntity",
    "PageCursor",
    "Note",
    "to_domain",
    # Store
    "LocalStore",
    "StoreTransaction",
    "SQLiteNoteStore",
    "SQLiteStoreConfig",
    # Remote
    "RemoteSource",
    "SimulatedNoteApi",
    "HttpNoteSource",
    "HttpSourceConfig",
    # Paging
    "PagingConfig",
    "SyncMediator",
    "LoadType",
    "InitializeAction",
    "MediatorResult",
    "WindowedReader",
    "LoadResult",
    "Pager",
    "PagingStream",
    "Window",
    "LoadState",
    "LoadStatus",
    "CombinedLoadStates",
    # Composition
    "NoteRepository",
    "Settings",
    # Exceptions
    "NotesSyncError",
    "FetchError",
    "StoreError",
    "StorageConnectionError",
    "ValidationError",
    "InvalidatedError",
    "StreamClosedError",
]

__version__ = "0.1.0"
