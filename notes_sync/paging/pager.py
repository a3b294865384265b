"""
Pager: binds the windowed reader and the sync mediator into one stream.

A PagingStream serves a growing window of notes from the local store and
asks the mediator for more remote data when the consumer nears the tail.

Concurrency rules:
- At most one mediator load runs per stream at a time.
- A trigger for an edge that is already in flight joins that load instead
  of starting another fetch.
- A trigger for a different edge waits until the running load finishes.

Load state is tracked per edge (refresh, prepend, append) and published
with every window, so consumers can render progress and errors.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generic, TypeVar

from ..exceptions import InvalidatedError, StoreError, StreamClosedError
from ..logging_utils import StreamLoggerAdapter, get_sync_logger
from ..models import NoteEntity
from .config import PagingConfig
from .mediator import InitializeAction, LoadType, MediatorResult, SyncMediator
from .reader import WindowedReader

logger = get_sync_logger("paging.pager")

T = TypeVar("T")


class LoadStatus(Enum):
    """Status of one load edge."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


@dataclass(frozen=True)
class LoadState:
    """Load state of one edge."""

    status: LoadStatus = LoadStatus.IDLE
    end_of_pagination_reached: bool = False
    error: str | None = None

    @classmethod
    def idle(cls, end_of_pagination_reached: bool = False) -> LoadState:
        return cls(LoadStatus.IDLE, end_of_pagination_reached)

    @classmethod
    def loading(cls) -> LoadState:
        return cls(LoadStatus.LOADING)

    @classmethod
    def failed(cls, message: str) -> LoadState:
        return cls(LoadStatus.ERROR, error=message)

    @property
    def is_loading(self) -> bool:
        return self.status == LoadStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.status == LoadStatus.ERROR


@dataclass(frozen=True)
class CombinedLoadStates:
    """Load states of all three edges."""

    refresh: LoadState = field(default_factory=LoadState)
    prepend: LoadState = field(default_factory=LoadState)
    append: LoadState = field(default_factory=LoadState)

    def get(self, load_type: LoadType) -> LoadState:
        return getattr(self, load_type.value)

    def with_state(self, load_type: LoadType, state: LoadState) -> CombinedLoadStates:
        return replace(self, **{load_type.value: state})


@dataclass(frozen=True)
class Window(Generic[T]):
    """A snapshot of the consumer-visible notes.

    generation identifies the store state the items were read from.
    """

    items: list[T] = field(default_factory=list)
    generation: int = -1
    has_more_before: bool = False
    has_more_after: bool = False
    load_states: CombinedLoadStates = field(default_factory=CombinedLoadStates)

    def __len__(self) -> int:
        return len(self.items)


def _identity(entity: NoteEntity) -> Any:
    return entity


class PagingStream(Generic[T]):
    """
    One consumer's view of the paged notes.

    Usage:

        >>> async with pager.open() as stream:
        ...     window = stream.current_window()
        ...     window = await stream.access(len(window) - 1)  # scrolled to the end
        ...     print(stream.load_state().append)
    """

    def __init__(
        self,
        config: PagingConfig,
        reader_factory: Callable[[], WindowedReader],
        mediator: SyncMediator,
        transform: Callable[[NoteEntity], T],
    ):
        self.config = config
        self.stream_id = uuid.uuid4().hex[:12]
        self.log = StreamLoggerAdapter(logger, self.stream_id)

        self._reader_factory = reader_factory
        self._mediator = mediator
        self._transform = transform

        self._loaded_count = config.initial_load_size
        self._reader: WindowedReader | None = None
        self._window: Window[T] = Window()
        self._states = CombinedLoadStates()

        self._inflight: dict[LoadType, asyncio.Task[MediatorResult]] = {}
        self._mediator_lock = asyncio.Lock()
        self._reload_lock = asyncio.Lock()
        self._pending_reload: asyncio.Task[None] | None = None

        self._subscribers: list[Callable[[Window[T]], None]] = []
        self._queues: list[asyncio.Queue[Window[T] | None]] = []
        self._started = False
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Serve the cached window, then refresh if the mediator asks for it."""
        self._ensure_open()
        if self._started:
            return
        self._started = True

        await self._reload()

        if await self._mediator.initialize() == InitializeAction.LAUNCH_INITIAL_REFRESH:
            await self.refresh()
        await self._trigger(LoadType.PREPEND)

    async def close(self) -> None:
        """Abandon in-flight work and end all window iterators."""
        if self._closed:
            return
        self._closed = True

        tasks = [task for task in self._inflight.values() if not task.done()]
        if self._pending_reload is not None and not self._pending_reload.done():
            tasks.append(self._pending_reload)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._reader is not None:
            self._reader.close()
            self._reader = None

        for queue in self._queues:
            queue.put_nowait(None)
        self._subscribers.clear()
        self.log.debug("Paging stream closed")

    async def __aenter__(self) -> PagingStream[T]:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StreamClosedError(self.stream_id)

    # =========================================================================
    # Consumer surface
    # =========================================================================

    def current_window(self) -> Window[T]:
        return self._window

    def load_state(self) -> CombinedLoadStates:
        return self._states

    async def access(self, index: int) -> Window[T]:
        """
        Report that the consumer is viewing the item at index.

        Near the tail the window grows from local data first; only when the
        store has nothing more does this trigger an append from the remote
        source. An append in error is not re-triggered; call retry().

        Returns:
            The window after any growth
        """
        self._ensure_open()
        window = self._window
        if index < len(window.items) - 1 - self.config.prefetch_distance:
            return window

        if window.has_more_after:
            self._loaded_count = len(window.items) + self.config.page_size
            await self._reload()
        elif self._should_append():
            await self.append()

        return self._window

    def _should_append(self) -> bool:
        append = self._states.append
        if append.end_of_pagination_reached or append.is_error:
            return False
        return not self._states.refresh.is_loading

    async def refresh(self) -> MediatorResult:
        """Replace everything with page 1 from the remote source."""
        return await self._trigger(LoadType.REFRESH)

    async def append(self) -> MediatorResult:
        """Fetch the next remote page after the last stored note."""
        return await self._trigger(LoadType.APPEND)

    async def retry(self) -> list[MediatorResult]:
        """Re-trigger every edge currently in error."""
        self._ensure_open()
        results = []
        for load_type in (LoadType.REFRESH, LoadType.PREPEND, LoadType.APPEND):
            if self._states.get(load_type).is_error:
                results.append(await self._trigger(load_type))
        return results

    def subscribe(self, callback: Callable[[Window[T]], None]) -> Callable[[], None]:
        """
        Call callback with every newly published window.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def windows(self) -> AsyncIterator[Window[T]]:
        """Yield the current window, then each new one until the stream closes."""
        queue: asyncio.Queue[Window[T] | None] = asyncio.Queue()
        self._queues.append(queue)
        try:
            if self._closed:
                return
            yield self._window
            while True:
                window = await queue.get()
                if window is None:
                    return
                yield window
        finally:
            self._queues.remove(queue)

    # =========================================================================
    # Mediator triggers
    # =========================================================================

    async def _trigger(self, load_type: LoadType) -> MediatorResult:
        self._ensure_open()
        task = self._inflight.get(load_type)
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._run(load_type))
            self._inflight[load_type] = task
        else:
            self.log.debug("Joining in-flight load", extra={"load_type": load_type.value})
        # A cancelled caller must not cancel the load other callers joined
        return await asyncio.shield(task)

    async def _run(self, load_type: LoadType) -> MediatorResult:
        context = {"load_type": load_type.value}
        try:
            async with self._mediator_lock:
                self._set_state(load_type, LoadState.loading())
                result = await self._mediator.load(load_type, self.config.page_size)

                if result.success:
                    self._apply_success(load_type, result)
                else:
                    self.log.warning(
                        f"{load_type.value} failed: {result.error}",
                        extra={**context, "page": result.page},
                    )
                    self._set_state(load_type, LoadState.failed(str(result.error)))

            await self._reload()
        except Exception as e:
            # Leaves the edge in ERROR; retry() re-runs it
            self.log.exception(f"{load_type.value} aborted: {e}", extra=context)
            self._set_state(load_type, LoadState.failed(str(e)))
            raise
        return result

    def _apply_success(self, load_type: LoadType, result: MediatorResult) -> None:
        end = result.end_of_pagination_reached
        if load_type == LoadType.REFRESH:
            self._loaded_count = self.config.initial_load_size
            self._states = self._states.with_state(LoadType.APPEND, LoadState.idle(end))
        elif load_type == LoadType.APPEND and result.fetched:
            self._loaded_count = max(self._loaded_count, len(self._window.items) + result.fetched)
        self._set_state(load_type, LoadState.idle(end))

    def _set_state(self, load_type: LoadType, state: LoadState) -> None:
        self._states = self._states.with_state(load_type, state)
        self._publish(replace(self._window, load_states=self._states))

    # =========================================================================
    # Window generations
    # =========================================================================

    async def _reload(self) -> None:
        async with self._reload_lock:
            if self._closed:
                return
            while True:
                if self._reader is None or self._reader.invalid:
                    if self._reader is not None:
                        self._reader.close()
                    self._reader = self._reader_factory()
                    self._reader.on_invalidate(self._schedule_reload)
                try:
                    result = await self._reader.load(0, self._loaded_count)
                    break
                except InvalidatedError:
                    continue

            self._publish(
                Window(
                    items=[self._transform(item) for item in result.items],
                    generation=result.generation,
                    has_more_before=result.has_more_before,
                    has_more_after=result.has_more_after,
                    load_states=self._states,
                )
            )

    def _schedule_reload(self) -> None:
        # Store changes made outside this stream also produce a new generation
        if self._closed:
            return
        if self._pending_reload is None or self._pending_reload.done():
            self._pending_reload = asyncio.get_running_loop().create_task(
                self._background_reload()
            )

    async def _background_reload(self) -> None:
        try:
            await self._reload()
        except StoreError as e:
            self.log.warning(f"Background reload failed: {e}")

    def _publish(self, window: Window[T]) -> None:
        if window == self._window:
            return
        self._window = window
        for callback in list(self._subscribers):
            callback(window)
        for queue in self._queues:
            queue.put_nowait(window)


class Pager(Generic[T]):
    """Factory for paging streams sharing one configuration."""

    def __init__(
        self,
        config: PagingConfig,
        reader_factory: Callable[[], WindowedReader],
        mediator: SyncMediator,
        transform: Callable[[NoteEntity], T] = _identity,
    ):
        """
        Args:
            config: Paging configuration
            reader_factory: Builds a fresh reader for each store generation
            mediator: Mediator used for remote loads
            transform: Maps stored notes to the consumer's item type
        """
        self.config = config
        self.reader_factory = reader_factory
        self.mediator = mediator
        self.transform = transform

    def open(self) -> PagingStream[T]:
        """Create an unstarted stream; start it with `await` on start() or `async with`."""
        return PagingStream(self.config, self.reader_factory, self.mediator, self.transform)
