"""
Notes repository.

Composition root for the paged notes stream: fixes the paging
configuration, wires store, remote source, mediator and reader together,
and maps stored notes to the domain shape.
"""

from __future__ import annotations

from dataclasses import replace

from .models import Note, to_domain
from .paging.config import PagingConfig
from .paging.mediator import InitializeAction, SyncMediator
from .paging.pager import Pager, PagingStream
from .paging.reader import WindowedReader
from .remote.base import RemoteSource
from .store.base import LocalStore

DEFAULT_PAGING_CONFIG = PagingConfig(
    page_size=5,
    prefetch_distance=1,
    enable_placeholders=False,
    initial_load_size=5,
)


class NoteRepository:
    """Offline-first paged notes.

    The local store is the single source of truth; the remote source only
    feeds it through the mediator.
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteSource,
        config: PagingConfig | None = None,
        initialize_action: InitializeAction = InitializeAction.LAUNCH_INITIAL_REFRESH,
    ):
        self.store = store
        self.remote = remote
        self.config = config or DEFAULT_PAGING_CONFIG
        self.mediator = SyncMediator(store, remote, initialize_action)

    def open(
        self,
        page_size: int | None = None,
        prefetch_distance: int | None = None,
    ) -> PagingStream[Note]:
        """
        Open a new paged notes stream.

        Args:
            page_size: Overrides the configured page size (and initial load size)
            prefetch_distance: Overrides the configured prefetch distance

        Returns:
            An unstarted stream; use `async with` or await start()
        """
        config = self.config
        if page_size is not None:
            config = replace(config, page_size=page_size, initial_load_size=page_size)
        if prefetch_distance is not None:
            config = replace(config, prefetch_distance=prefetch_distance)

        pager: Pager[Note] = Pager(
            config=config,
            reader_factory=lambda: WindowedReader(self.store),
            mediator=self.mediator,
            transform=to_domain,
        )
        return pager.open()

    def paged_notes(self) -> PagingStream[Note]:
        """Open a stream with the repository's fixed configuration."""
        return self.open()
