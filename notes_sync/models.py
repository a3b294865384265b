"""
Data model for the notes cache.

NoteEntity is the stored row, PageCursor the remote pagination bookkeeping
attached to each stored row, and Note the shape handed to consumers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .exceptions import ValidationError


@dataclass(frozen=True)
class NoteEntity:
    """A note as stored locally and as returned by a remote source."""

    id: int
    title: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"id": self.id, "title": self.title, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoteEntity:
        """Create from a remote payload.

        Raises:
            ValidationError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValidationError("note", "expected an object", repr(data))

        for key in ("id", "title", "content"):
            if key not in data:
                raise ValidationError(key, "missing from note payload")

        note_id = data["id"]
        # bool is an int subclass
        if isinstance(note_id, bool) or not isinstance(note_id, int):
            raise ValidationError("id", "must be an integer", repr(note_id))

        return cls(id=note_id, title=str(data["title"]), content=str(data["content"]))


@dataclass(frozen=True)
class PageCursor:
    """Remote page boundary for the batch that produced a stored note.

    All notes fetched in one batch share the same (prev_page, next_page) pair.
    next_page is None iff the batch came from the last page fetched.
    """

    item_id: int
    prev_page: int | None
    next_page: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "prev_page": self.prev_page,
            "next_page": self.next_page,
        }


@dataclass(frozen=True)
class Note:
    """Domain-facing note."""

    id: int
    title: str
    content: str


def to_domain(entity: NoteEntity) -> Note:
    """Map a stored note to its domain shape."""
    return Note(id=entity.id, title=entity.title, content=entity.content)
