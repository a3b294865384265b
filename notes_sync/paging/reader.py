"""
Windowed reader over the local store.

Serves ordered windows of notes straight from the store. A reader belongs
to one store generation: once the notes table changes, the reader is
invalid and must be replaced by a fresh one.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..exceptions import InvalidatedError
from ..models import NoteEntity
from ..store.base import LocalStore


@dataclass(frozen=True)
class LoadResult:
    """One window read from the store."""

    items: list[NoteEntity]
    position: int
    has_more_before: bool
    has_more_after: bool
    generation: int = 0


class WindowedReader:
    """Reads windows of notes for one store generation."""

    def __init__(self, store: LocalStore):
        self.store = store
        self.generation = store.generation
        self._invalid = False
        self._callbacks: list[Callable[[], None]] = []
        store.add_invalidation_listener(self._on_store_changed)

    @property
    def invalid(self) -> bool:
        return self._invalid or self.store.generation != self.generation

    def on_invalidate(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once when this reader becomes invalid."""
        self._callbacks.append(callback)

    def invalidate(self) -> None:
        if self._invalid:
            return
        self._invalid = True
        self.store.remove_invalidation_listener(self._on_store_changed)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def _on_store_changed(self, generation: int) -> None:
        if generation != self.generation:
            self.invalidate()

    async def load(self, position: int, size: int) -> LoadResult:
        """
        Read size notes starting at position.

        One extra row is read so has_more_after matches the returned slice.

        Raises:
            InvalidatedError: If the store changed since this reader was created
        """
        if self.invalid:
            raise InvalidatedError(self.generation, self.store.generation)

        position = max(position, 0)
        rows = await self.store.query_window(position, size + 1)

        # A merge may have committed while the read waited on the store lock
        if self.invalid:
            raise InvalidatedError(self.generation, self.store.generation)

        return LoadResult(
            items=rows[:size],
            position=position,
            has_more_before=position > 0,
            has_more_after=len(rows) > size,
            generation=self.generation,
        )

    def close(self) -> None:
        """Detach from the store without firing callbacks."""
        self._callbacks.clear()
        self.store.remove_invalidation_listener(self._on_store_changed)
