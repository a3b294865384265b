"""
Tests for the pager and paging streams.

Runs the real mediator and SQLite store against the scripted remote
source, so every test exercises the whole load path.
"""

import asyncio

import pytest

from notes_sync.exceptions import StreamClosedError
from notes_sync.models import Note, NoteEntity, to_domain
from notes_sync.paging import (
    InitializeAction,
    LoadState,
    LoadStatus,
    Pager,
    PagingConfig,
    SyncMediator,
    WindowedReader,
)

from .conftest import make_notes, snapshot


def make_pager(store, remote, config=None, transform=None, initialize_action=None):
    mediator = SyncMediator(
        store, remote, initialize_action or InitializeAction.LAUNCH_INITIAL_REFRESH
    )
    kwargs = {"transform": transform} if transform else {}
    return Pager(config or PagingConfig(), lambda: WindowedReader(store), mediator, **kwargs)


def ids(window):
    return [item.id for item in window.items]


class TestStart:
    """Tests for opening a stream."""

    @pytest.mark.asyncio
    async def test_start_refreshes_and_serves_first_page(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            window = stream.current_window()
            states = stream.load_state()

            assert ids(window) == [1, 2, 3, 4, 5]
            assert window.has_more_before is False
            assert remote.calls == [(1, 5)]
            assert states.refresh == LoadState.idle()
            assert states.prepend == LoadState.idle(end_of_pagination_reached=True)
            assert states.append == LoadState.idle()

    @pytest.mark.asyncio
    async def test_cached_window_is_served_before_refresh(self, store, remote):
        """Offline-first: cached notes are visible while the refresh is in flight."""
        await store.upsert_items(make_notes(100, 3))
        gate = remote.hold()
        stream = make_pager(store, remote).open()

        starting = asyncio.create_task(stream.start())
        await remote.started.wait()

        assert ids(stream.current_window()) == [100, 101, 102]
        assert stream.load_state().refresh.status == LoadStatus.LOADING

        gate.set()
        await starting
        assert ids(stream.current_window()) == [1, 2, 3, 4, 5]
        await stream.close()

    @pytest.mark.asyncio
    async def test_skip_initial_refresh(self, store, remote):
        await store.upsert_items(make_notes(1, 3))
        pager = make_pager(
            store, remote, initialize_action=InitializeAction.SKIP_INITIAL_REFRESH
        )

        async with pager.open() as stream:
            assert remote.calls == []
            assert ids(stream.current_window()) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_transform_maps_items(self, store, remote):
        async with make_pager(store, remote, transform=to_domain).open() as stream:
            first = stream.current_window().items[0]

        assert isinstance(first, Note)
        assert first == Note(id=1, title="Note #1", content="content 1")


class TestAccess:
    """Tests for consumer-driven growth."""

    @pytest.mark.asyncio
    async def test_access_away_from_tail_does_nothing(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            window = await stream.access(2)

            assert len(window) == 5
            assert remote.calls == [(1, 5)]

    @pytest.mark.asyncio
    async def test_access_near_tail_appends(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            window = await stream.access(3)

            assert ids(window) == list(range(1, 11))
            assert remote.calls == [(1, 5), (2, 5)]
            assert stream.load_state().append == LoadState.idle()

    @pytest.mark.asyncio
    async def test_local_data_is_used_before_remote(self, store, remote):
        await store.upsert_items(make_notes(1, 12))
        pager = make_pager(
            store, remote, initialize_action=InitializeAction.SKIP_INITIAL_REFRESH
        )

        async with pager.open() as stream:
            assert stream.current_window().has_more_after is True
            window = await stream.access(4)

            assert ids(window) == list(range(1, 11))
            assert remote.calls == []

    @pytest.mark.asyncio
    async def test_scroll_to_the_end(self, store, remote):
        """Five pages, then an empty one: append ends and stops fetching."""
        async with make_pager(store, remote).open() as stream:
            while not stream.load_state().append.end_of_pagination_reached:
                await stream.access(len(stream.current_window()) - 1)

            assert ids(stream.current_window()) == list(range(1, 26))
            assert remote.pages_fetched() == [1, 2, 3, 4, 5, 6]

            await stream.access(24)
            await stream.append()
            assert remote.pages_fetched() == [1, 2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_custom_page_size_and_prefetch(self, store, remote):
        config = PagingConfig(page_size=10, prefetch_distance=4, initial_load_size=10)
        async with make_pager(store, remote, config=config).open() as stream:
            assert len(stream.current_window()) == 10

            await stream.access(4)
            assert remote.calls == [(1, 10)]

            await stream.access(5)
            assert remote.calls == [(1, 10), (2, 10)]
            assert len(stream.current_window()) == 20


class TestSingleFlight:
    """Tests for mediator load deduplication."""

    @pytest.mark.asyncio
    async def test_concurrent_appends_fetch_once(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            gate = remote.hold()
            remote.started.clear()

            first = asyncio.create_task(stream.append())
            second = asyncio.create_task(stream.append())
            await remote.started.wait()
            gate.set()
            results = await asyncio.gather(first, second)

            assert remote.pages_fetched() == [1, 2]
            assert results[0] is results[1]

    @pytest.mark.asyncio
    async def test_rapid_accesses_fetch_once(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            await asyncio.gather(*(stream.access(4) for _ in range(5)))

            assert remote.pages_fetched() == [1, 2]
            assert len(stream.current_window()) == 10

    @pytest.mark.asyncio
    async def test_other_edge_waits_for_in_flight_load(self, store, remote):
        """A refresh issued during an append runs only after the append is done."""
        async with make_pager(store, remote).open() as stream:
            gate = remote.hold()
            remote.started.clear()

            appending = asyncio.create_task(stream.append())
            await remote.started.wait()
            refreshing = asyncio.create_task(stream.refresh())
            for _ in range(5):
                await asyncio.sleep(0)

            assert remote.pages_fetched() == [1, 2]

            gate.set()
            await asyncio.gather(appending, refreshing)

            assert remote.pages_fetched() == [1, 2, 1]
            assert ids(stream.current_window()) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_sequential_appends_each_fetch(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            await stream.append()
            await stream.append()

            assert remote.pages_fetched() == [1, 2, 3]


class TestErrors:
    """Tests for error load states and retry."""

    @pytest.mark.asyncio
    async def test_append_error_keeps_last_window(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            remote.fail_pages.add(2)

            window = await stream.access(4)
            append = stream.load_state().append

            assert append.status == LoadStatus.ERROR
            assert "page 2" in append.error
            assert ids(window) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_errored_append_is_not_retriggered_by_access(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            remote.fail_pages.add(2)
            await stream.access(4)
            await stream.access(4)

            assert remote.pages_fetched() == [1, 2]

    @pytest.mark.asyncio
    async def test_retry_reruns_failed_edge(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            remote.fail_pages.add(2)
            await stream.access(4)

            remote.fail_pages.clear()
            results = await stream.retry()

            assert len(results) == 1 and results[0].success
            assert stream.load_state().append == LoadState.idle()
            assert len(stream.current_window()) == 10

    @pytest.mark.asyncio
    async def test_unexpected_error_leaves_edge_in_error(self, store, remote, monkeypatch):
        """An exception escaping the mediator marks the edge failed instead of loading."""
        pager = make_pager(store, remote)
        async with pager.open() as stream:

            async def broken(load_type, page_size):
                raise RuntimeError("mediator bug")

            monkeypatch.setattr(pager.mediator, "load", broken)
            with pytest.raises(RuntimeError):
                await stream.append()

            append = stream.load_state().append
            assert append.is_error
            assert "mediator bug" in append.error
            assert stream.current_window().load_states.append.is_error

            monkeypatch.undo()
            await stream.retry()

            assert stream.load_state().append == LoadState.idle()
            assert len(stream.current_window()) == 10

    @pytest.mark.asyncio
    async def test_refresh_error_keeps_cached_data(self, store, remote):
        await store.upsert_items(make_notes(100, 3))
        before = await snapshot(store)
        remote.fail_pages.add(1)

        async with make_pager(store, remote).open() as stream:
            assert stream.load_state().refresh.is_error
            assert ids(stream.current_window()) == [100, 101, 102]
            assert await snapshot(store) == before

            remote.fail_pages.clear()
            await stream.retry()

            assert stream.load_state().refresh == LoadState.idle()
            assert ids(stream.current_window()) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_refresh_resets_append_end(self, store, remote):
        remote.total_pages = 1
        async with make_pager(store, remote).open() as stream:
            await stream.access(4)
            assert stream.load_state().append.end_of_pagination_reached

            remote.total_pages = 5
            await stream.refresh()

            assert stream.load_state().append == LoadState.idle()
            await stream.access(4)
            assert len(stream.current_window()) == 10


class TestEmission:
    """Tests for window publication and generations."""

    @pytest.mark.asyncio
    async def test_subscribers_see_loading_then_idle(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            statuses = []
            unsubscribe = stream.subscribe(
                lambda window: statuses.append(window.load_states.append.status)
            )
            await stream.append()
            unsubscribe()
            await stream.append()

            assert statuses[0] == LoadStatus.LOADING
            assert statuses[-1] == LoadStatus.IDLE
            assert LoadStatus.LOADING not in statuses[1:]

    @pytest.mark.asyncio
    async def test_generations_increase_with_merges(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            before = stream.current_window().generation
            await stream.access(4)

            assert stream.current_window().generation > before

    @pytest.mark.asyncio
    async def test_windows_iterator_ends_on_close(self, store, remote):
        stream = make_pager(store, remote).open()
        await stream.start()
        sizes = []

        async def consume():
            async for window in stream.windows():
                sizes.append(len(window))

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        await stream.access(4)
        await stream.close()
        await asyncio.wait_for(consumer, timeout=1)

        assert sizes[0] == 5
        assert sizes[-1] == 10

    @pytest.mark.asyncio
    async def test_external_store_change_publishes_new_window(self, store, remote):
        async with make_pager(store, remote).open() as stream:
            updated = asyncio.Event()
            stream.subscribe(
                lambda window: updated.set() if window.items[2].title == "edited" else None
            )

            await store.upsert_items([NoteEntity(id=3, title="edited", content="x")])
            await asyncio.wait_for(updated.wait(), timeout=1)

            assert stream.current_window().items[2].title == "edited"


class TestClose:
    """Tests for stream teardown."""

    @pytest.mark.asyncio
    async def test_close_abandons_in_flight_fetch_without_partial_state(self, store, remote):
        stream = make_pager(store, remote).open()
        await stream.start()
        before = await snapshot(store)
        remote.hold()
        remote.started.clear()

        appending = asyncio.create_task(stream.append())
        await remote.started.wait()
        await stream.close()

        with pytest.raises(asyncio.CancelledError):
            await appending
        assert await snapshot(store) == before

    @pytest.mark.asyncio
    async def test_closed_stream_rejects_triggers(self, store, remote):
        stream = make_pager(store, remote).open()
        await stream.start()
        await stream.close()

        assert stream.closed
        with pytest.raises(StreamClosedError):
            await stream.append()
        with pytest.raises(StreamClosedError):
            await stream.access(0)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, store, remote):
        stream = make_pager(store, remote).open()
        await stream.start()
        await stream.close()
        await stream.close()
