"""
Abstract base classes for the local notes store.

The store holds two tables, notes and their page cursors, and is the
single source of truth for every reader. All writes go through an
atomic scope (see LocalStore.run_atomic).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from ..models import NoteEntity, PageCursor

T = TypeVar("T")

InvalidationListener = Callable[[int], None]


class StoreTransaction(ABC):
    """Handle for the operations allowed inside one atomic scope.

    Reads through the handle see the scope's own uncommitted writes.
    """

    @abstractmethod
    async def upsert_items(self, items: Sequence[NoteEntity]) -> None:
        """Insert or replace notes by id."""

    @abstractmethod
    async def clear_items(self) -> None:
        """Delete every stored note."""

    @abstractmethod
    async def upsert_cursors(self, cursors: Sequence[PageCursor]) -> None:
        """Insert or replace cursors by item id."""

    @abstractmethod
    async def clear_cursors(self) -> None:
        """Delete every stored cursor."""

    @abstractmethod
    async def end_pagination_at(self, page: int) -> int:
        """Set next_page to None on every cursor pointing at page.

        Returns:
            Number of cursors updated
        """

    @abstractmethod
    async def query_window(self, offset: int, limit: int) -> list[NoteEntity]:
        """Read notes ascending by id."""

    @abstractmethod
    async def cursor_for(self, item_id: int) -> PageCursor | None:
        """Get the cursor for a note, if any."""

    @abstractmethod
    async def last_cursor(self) -> PageCursor | None:
        """Get the cursor of the note with the highest stored id."""


class LocalStore(ABC):
    """
    Durable ordered notes table plus cursor bookkeeping.

    Concurrent readers never observe a partially applied atomic scope.
    Standalone write methods run in their own atomic scope.
    """

    # =========================================================================
    # Writes
    # =========================================================================

    @abstractmethod
    async def run_atomic(self, work: Callable[[StoreTransaction], Awaitable[T]]) -> T:
        """
        Run work inside one transaction.

        Every write performed through the transaction handle commits together
        or not at all. If work raises, the scope is rolled back and the
        exception propagates.

        Args:
            work: Async callable receiving the transaction handle

        Returns:
            Whatever work returns
        """

    async def upsert_items(self, items: Sequence[NoteEntity]) -> None:
        """Insert or replace notes by id. Idempotent."""
        await self.run_atomic(lambda tx: tx.upsert_items(items))

    async def clear_items(self) -> None:
        """Delete every stored note."""
        await self.run_atomic(lambda tx: tx.clear_items())

    async def upsert_cursors(self, cursors: Sequence[PageCursor]) -> None:
        """Insert or replace cursors by item id."""
        await self.run_atomic(lambda tx: tx.upsert_cursors(cursors))

    async def clear_cursors(self) -> None:
        """Delete every stored cursor."""
        await self.run_atomic(lambda tx: tx.clear_cursors())

    # =========================================================================
    # Reads
    # =========================================================================

    @abstractmethod
    async def query_window(self, offset: int, limit: int) -> list[NoteEntity]:
        """
        Read a window of notes ascending by id.

        Args:
            offset: Number of notes to skip
            limit: Maximum number of notes to return

        Returns:
            Notes sorted by id, regardless of insertion order
        """

    @abstractmethod
    async def count_items(self) -> int:
        """Count stored notes."""

    @abstractmethod
    async def cursor_for(self, item_id: int) -> PageCursor | None:
        """Get the cursor for a note, if any."""

    @abstractmethod
    async def last_cursor(self) -> PageCursor | None:
        """Get the cursor of the note with the highest stored id."""

    @abstractmethod
    async def list_cursors(self) -> list[PageCursor]:
        """Read every cursor ascending by item id."""

    # =========================================================================
    # Invalidation
    # =========================================================================

    @property
    @abstractmethod
    def generation(self) -> int:
        """Counter bumped after every commit that changed the notes table."""

    @abstractmethod
    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Register a callback invoked with the new generation after note changes."""

    @abstractmethod
    def remove_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection."""
