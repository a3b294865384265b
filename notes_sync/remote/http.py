"""
HTTP remote source.

Fetches pages from a JSON endpoint:

    GET {base_url}{notes_path}?page=<page>&pageSize=<page_size>

which answers with an array of {"id", "title", "content"} objects. An empty
array means there are no more pages. Failures are reported as FetchError;
there is no retry here, callers re-trigger explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import aiohttp

from ..exceptions import FetchError, ValidationError
from ..logging_utils import get_sync_logger
from ..models import NoteEntity
from .base import RemoteSource, validate_page_request

logger = get_sync_logger("remote.http")


@dataclass
class HttpSourceConfig:
    """Configuration for the HTTP notes source."""

    base_url: str
    notes_path: str = "/notes"
    timeout_seconds: float = 10.0
    auth_token: str | None = None

    @classmethod
    def from_env(cls) -> HttpSourceConfig:
        """Create config from environment variables."""
        base_url = os.environ.get("NOTES_SYNC_REMOTE_URL")
        if not base_url:
            raise ValidationError("NOTES_SYNC_REMOTE_URL", "environment variable not set")

        return cls(
            base_url=base_url,
            notes_path=os.environ.get("NOTES_SYNC_REMOTE_PATH", "/notes"),
            timeout_seconds=float(os.environ.get("NOTES_SYNC_REMOTE_TIMEOUT", "10.0")),
            auth_token=os.environ.get("NOTES_SYNC_REMOTE_TOKEN"),
        )

    @property
    def notes_url(self) -> str:
        return self.base_url.rstrip("/") + "/" + self.notes_path.lstrip("/")


class HttpNoteSource(RemoteSource):
    """Remote source backed by an aiohttp client session.

    The session is created on first fetch and reused until close().
    """

    def __init__(self, config: HttpSourceConfig):
        self.config = config
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self.config.auth_token:
                headers["Authorization"] = f"Bearer {self.config.auth_token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            )
        return self._session

    async def fetch(self, page: int, page_size: int) -> list[NoteEntity]:
        validate_page_request(page, page_size)
        params = {"page": str(page), "pageSize": str(page_size)}
        session = self._get_session()

        logger.debug(f"GET {self.config.notes_url} pageSize={page_size}", extra={"page": page})
        try:
            async with session.get(self.config.notes_url, params=params) as response:
                if response.status >= 400:
                    raise FetchError(page, reason=f"HTTP {response.status}")
                payload: Any = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise FetchError(page, cause=e) from e

        if not isinstance(payload, list):
            raise FetchError(page, reason="expected a JSON array of notes")

        try:
            return [NoteEntity.from_dict(entry) for entry in payload]
        except ValidationError as e:
            raise FetchError(page, cause=e) from e

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
