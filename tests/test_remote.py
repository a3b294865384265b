"""
Tests for remote sources.

The HTTP source runs against a local aiohttp server.
"""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from notes_sync.exceptions import FetchError, ValidationError
from notes_sync.models import NoteEntity
from notes_sync.remote.http import HttpNoteSource, HttpSourceConfig
from notes_sync.remote.simulated import SimulatedNoteApi


class TestSimulatedNoteApi:
    """Tests for the simulated API."""

    @pytest.mark.asyncio
    async def test_page_contents(self):
        api = SimulatedNoteApi(total_pages=5, latency=0)

        page = await api.fetch(2, 5)

        assert [n.id for n in page] == [6, 7, 8, 9, 10]
        assert page[0] == NoteEntity(
            id=6,
            title="Note #6",
            content="This is the content for note 6 fetched from the remote API.",
        )

    @pytest.mark.asyncio
    async def test_pages_after_total_are_empty(self):
        api = SimulatedNoteApi(total_pages=5, latency=0)

        assert await api.fetch(6, 5) == []
        assert api.fetch_count == 1

    @pytest.mark.asyncio
    async def test_invalid_page_rejected(self):
        api = SimulatedNoteApi(latency=0)

        with pytest.raises(ValidationError):
            await api.fetch(0, 5)
        with pytest.raises(ValidationError):
            await api.fetch(1, 0)


def _notes_app(total_pages: int = 2, status: int = 200, body: object = None) -> web.Application:
    requests = []

    async def list_notes(request: web.Request) -> web.Response:
        page = int(request.query["page"])
        page_size = int(request.query["pageSize"])
        requests.append((page, page_size, request.headers.get("Authorization")))

        if status != 200:
            return web.json_response({"error": "nope"}, status=status)
        if body is not None:
            return web.json_response(body)
        if page > total_pages:
            return web.json_response([])

        first = (page - 1) * page_size + 1
        return web.json_response(
            [
                {"id": i, "title": f"Note #{i}", "content": f"body {i}"}
                for i in range(first, first + page_size)
            ]
        )

    app = web.Application()
    app.router.add_get("/api/notes", list_notes)
    app["requests"] = requests
    return app


@pytest.mark.integration
class TestHttpNoteSource:
    """Tests for the aiohttp-backed source."""

    @pytest.mark.asyncio
    async def test_fetch_pages(self):
        app = _notes_app(total_pages=2)
        async with TestServer(app) as server:
            config = HttpSourceConfig(
                base_url=str(server.make_url("/api")), notes_path="notes", auth_token="t0k"
            )
            async with HttpNoteSource(config) as source:
                first = await source.fetch(1, 3)
                last = await source.fetch(3, 3)

        assert [n.id for n in first] == [1, 2, 3]
        assert first[0] == NoteEntity(id=1, title="Note #1", content="body 1")
        assert last == []
        assert app["requests"] == [(1, 3, "Bearer t0k"), (3, 3, "Bearer t0k")]

    @pytest.mark.asyncio
    async def test_http_error_raises_fetch_error(self):
        async with TestServer(_notes_app(status=503)) as server:
            source = HttpNoteSource(HttpSourceConfig(base_url=str(server.make_url("/api"))))
            with pytest.raises(FetchError) as exc_info:
                await source.fetch(1, 5)
            await source.close()

        assert exc_info.value.page == 1
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_fetch_error(self):
        body = [{"id": "not-a-number", "title": "x", "content": "y"}]
        async with TestServer(_notes_app(body=body)) as server:
            source = HttpNoteSource(HttpSourceConfig(base_url=str(server.make_url("/api"))))
            with pytest.raises(FetchError):
                await source.fetch(1, 5)
            await source.close()

    @pytest.mark.asyncio
    async def test_non_list_payload_raises_fetch_error(self):
        async with TestServer(_notes_app(body={"notes": []})) as server:
            source = HttpNoteSource(HttpSourceConfig(base_url=str(server.make_url("/api"))))
            with pytest.raises(FetchError):
                await source.fetch(1, 5)
            await source.close()

    @pytest.mark.asyncio
    async def test_unreachable_server_raises_fetch_error(self, unused_tcp_port):
        config = HttpSourceConfig(base_url=f"http://127.0.0.1:{unused_tcp_port}", timeout_seconds=2)
        async with HttpNoteSource(config) as source:
            with pytest.raises(FetchError) as exc_info:
                await source.fetch(4, 5)

        assert exc_info.value.page == 4


class TestHttpSourceConfig:
    """Tests for HTTP source configuration."""

    def test_notes_url_joins_paths(self):
        config = HttpSourceConfig(base_url="https://example.com/api/", notes_path="/notes")
        assert config.notes_url == "https://example.com/api/notes"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NOTES_SYNC_REMOTE_URL", "https://example.com")
        monkeypatch.setenv("NOTES_SYNC_REMOTE_TIMEOUT", "3.5")

        config = HttpSourceConfig.from_env()

        assert config.base_url == "https://example.com"
        assert config.timeout_seconds == 3.5
        assert config.notes_path == "/notes"

    def test_from_env_requires_url(self, monkeypatch):
        monkeypatch.delenv("NOTES_SYNC_REMOTE_URL", raising=False)
        with pytest.raises(ValidationError):
            HttpSourceConfig.from_env()
