"""
Paging layer.

- SyncMediator: remote page -> atomic merge into the local store
- WindowedReader: ordered windows straight from the local store
- Pager / PagingStream: binds both, single-flights mediator loads and
  publishes windows with per-edge load state
"""

from .config import PagingConfig
from .mediator import InitializeAction, LoadType, MediatorResult, SyncMediator, page_cursors
from .pager import (
    CombinedLoadStates,
    LoadState,
    LoadStatus,
    Pager,
    PagingStream,
    Window,
)
from .reader import LoadResult, WindowedReader

__all__ = [
    "PagingConfig",
    # Mediator
    "SyncMediator",
    "LoadType",
    "InitializeAction",
    "MediatorResult",
    "page_cursors",
    # Reader
    "WindowedReader",
    "LoadResult",
    # Pager
    "Pager",
    "PagingStream",
    "Window",
    "LoadState",
    "LoadStatus",
    "CombinedLoadStates",
]
