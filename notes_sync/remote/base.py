"""
Remote source contract.

A remote source serves notes by sequential page number. An empty page
means the source is exhausted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..exceptions import ValidationError
from ..models import NoteEntity


class RemoteSource(ABC):
    """Paginated fetch capability consumed by the sync mediator."""

    @abstractmethod
    async def fetch(self, page: int, page_size: int) -> list[NoteEntity]:
        """
        Fetch one page of notes.

        Args:
            page: 1-based page number
            page_size: Number of notes per page

        Returns:
            Ordered notes for the page; empty once the source is exhausted

        Raises:
            FetchError: If the page could not be delivered
            ValidationError: If page or page_size is out of range
        """

    async def close(self) -> None:
        """Release resources held by the source."""
        return None

    async def __aenter__(self) -> RemoteSource:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def validate_page_request(page: int, page_size: int) -> None:
    """Reject page numbers below 1 and non-positive page sizes."""
    if page < 1:
        raise ValidationError("page", "must be >= 1", str(page))
    if page_size < 1:
        raise ValidationError("page_size", "must be >= 1", str(page_size))
