"""
Simulated remote notes API.

Stands in for a real backend in demos and tests: a fixed number of full
pages followed by empty pages, with artificial network latency.
"""

from __future__ import annotations

import asyncio

from ..logging_utils import get_sync_logger
from ..models import NoteEntity
from .base import RemoteSource, validate_page_request

logger = get_sync_logger("remote.simulated")


class SimulatedNoteApi(RemoteSource):
    """Fake notes API with a finite number of pages.

    Page p holds ids (p - 1) * page_size + 1 through p * page_size.
    Every page after total_pages is empty.
    """

    def __init__(self, total_pages: int = 5, latency: float = 1.5):
        """
        Args:
            total_pages: Number of non-empty pages served
            latency: Seconds to sleep per fetch, simulating the network
        """
        self.total_pages = total_pages
        self.latency = latency
        self.fetch_count = 0

    async def fetch(self, page: int, page_size: int) -> list[NoteEntity]:
        validate_page_request(page, page_size)
        self.fetch_count += 1
        logger.info(f"Fetching page: {page}", extra={"page": page})

        if self.latency > 0:
            await asyncio.sleep(self.latency)

        if page > self.total_pages:
            logger.info("End of data reached.")
            return []

        first_id = (page - 1) * page_size + 1
        return [
            NoteEntity(
                id=note_id,
                title=f"Note #{note_id}",
                content=f"This is the content for note {note_id} fetched from the remote API.",
            )
            for note_id in range(first_id, first_id + page_size)
        ]
