"""
Shared test configuration and fixtures.

Provides an in-memory SQLite store and a scripted remote source that
records every fetch, can hold fetches behind a gate, and can fail on
demand.
"""

import asyncio

import pytest

from notes_sync.exceptions import FetchError
from notes_sync.models import NoteEntity
from notes_sync.remote.base import RemoteSource, validate_page_request
from notes_sync.store.sqlite import SQLiteNoteStore, SQLiteStoreConfig


def make_notes(first_id: int, count: int, prefix: str = "Note") -> list[NoteEntity]:
    """Build count notes with consecutive ids starting at first_id."""
    return [
        NoteEntity(id=i, title=f"{prefix} #{i}", content=f"content {i}")
        for i in range(first_id, first_id + count)
    ]


class ScriptedRemoteSource(RemoteSource):
    """
    Remote source for tests.

    Serves total_pages full pages, then empty pages. Every call is
    recorded in `calls` as (page, page_size).
    """

    def __init__(self, total_pages: int = 5):
        self.total_pages = total_pages
        self.calls: list[tuple[int, int]] = []
        self.fail_pages: set[int] = set()
        self.overrides: dict[int, list[NoteEntity]] = {}
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    def hold(self) -> asyncio.Event:
        """Block subsequent fetches until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    def pages_fetched(self) -> list[int]:
        return [page for page, _ in self.calls]

    async def fetch(self, page: int, page_size: int) -> list[NoteEntity]:
        validate_page_request(page, page_size)
        self.calls.append((page, page_size))
        self.started.set()

        if self.gate is not None:
            await self.gate.wait()

        if page in self.fail_pages:
            raise FetchError(page, reason="scripted failure")
        if page in self.overrides:
            return list(self.overrides[page])
        if page > self.total_pages:
            return []
        return make_notes((page - 1) * page_size + 1, page_size)


@pytest.fixture
async def store():
    """Fixture providing an initialized in-memory SQLite store."""
    store = await SQLiteNoteStore.create(SQLiteStoreConfig(db_path=":memory:"))
    yield store
    await store.close()


@pytest.fixture
def remote():
    """Fixture providing a scripted remote source with five pages."""
    return ScriptedRemoteSource(total_pages=5)


async def snapshot(store: SQLiteNoteStore) -> tuple[list[NoteEntity], list]:
    """Read every note and cursor for before/after comparisons."""
    return await store.query_window(0, 10_000), await store.list_cursors()
