"""
Sync mediator between the remote source and the local store.

Decides, per load trigger, which remote page to fetch and merges it into
the store in one atomic scope:

- REFRESH: always page 1. Clears notes and cursors in the same scope as
  the inserts, so readers go straight from the old data to the new page.
- PREPEND: never fetches. The feed only grows at the tail.
- APPEND: continues from the next_page of the cursor belonging to the
  highest stored id. No cursor, or a null next_page, means the end has
  been reached and nothing is fetched. When an appended page comes back
  empty, the cursors of the previous page lose their next_page in the same
  scope, so later appends stop without touching the network.

Failures are returned as MediatorResult.failure(...), never raised, and
never retried here; the caller decides when to re-trigger.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from ..exceptions import FetchError, StoreError
from ..logging_utils import get_sync_logger
from ..models import NoteEntity, PageCursor
from ..remote.base import RemoteSource
from ..store.base import LocalStore, StoreTransaction

logger = get_sync_logger("paging.mediator")


class LoadType(Enum):
    """Load trigger kinds."""

    REFRESH = "refresh"
    PREPEND = "prepend"
    APPEND = "append"


class InitializeAction(Enum):
    """Whether a stream should refresh from the remote source when it opens."""

    LAUNCH_INITIAL_REFRESH = "launch_initial_refresh"
    SKIP_INITIAL_REFRESH = "skip_initial_refresh"


@dataclass(frozen=True)
class MediatorResult:
    """Outcome of one mediator load."""

    end_of_pagination_reached: bool = False
    error: Exception | None = None
    page: int | None = None
    fetched: int = 0

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def boundary(cls) -> MediatorResult:
        """Success without fetching: nothing more in this direction."""
        return cls(end_of_pagination_reached=True)

    @classmethod
    def failure(cls, error: Exception, page: int | None = None) -> MediatorResult:
        return cls(error=error, page=page)


def page_cursors(
    items: list[NoteEntity], page: int, end_reached: bool
) -> list[PageCursor]:
    """Build the cursors for one fetched page.

    Every note of the page shares the same (prev_page, next_page) pair.
    """
    prev_page = None if page == 1 else page - 1
    next_page = None if end_reached else page + 1
    return [PageCursor(item_id=item.id, prev_page=prev_page, next_page=next_page) for item in items]


class SyncMediator:
    """Fetches remote pages and merges them into the local store.

    Not safe to run concurrently with itself for the same store; the pager
    guarantees a single in-flight load per stream.
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteSource,
        initialize_action: InitializeAction = InitializeAction.LAUNCH_INITIAL_REFRESH,
    ):
        """
        Args:
            store: Local store that receives merged pages
            remote: Paginated remote source
            initialize_action: Whether opening a stream starts with a refresh
        """
        self.store = store
        self.remote = remote
        self.initialize_action = initialize_action

    async def initialize(self) -> InitializeAction:
        return self.initialize_action

    async def load(self, load_type: LoadType, page_size: int) -> MediatorResult:
        """
        Run one load trigger.

        Args:
            load_type: Which edge triggered the load
            page_size: Notes per remote page

        Returns:
            MediatorResult describing success, end of pagination, or the error
        """
        page: int | None = None
        try:
            if load_type == LoadType.PREPEND:
                return MediatorResult.boundary()

            if load_type == LoadType.REFRESH:
                page = 1
            else:
                last = await self.store.last_cursor()
                if last is None or last.next_page is None:
                    logger.debug("Append boundary reached, nothing to fetch")
                    return MediatorResult.boundary()
                page = last.next_page

            start = time.monotonic()
            items = await self._fetch(page, page_size)
            end_reached = not items

            await self.store.run_atomic(
                lambda tx: self._merge(tx, load_type, items, page, end_reached)
            )

            duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                f"{load_type.value} merged page {page}",
                extra={
                    "load_type": load_type.value,
                    "page": page,
                    "fetched": len(items),
                    "end_reached": end_reached,
                    "duration_ms": duration_ms,
                },
            )
            return MediatorResult(
                end_of_pagination_reached=end_reached, page=page, fetched=len(items)
            )

        except (FetchError, StoreError) as e:
            logger.warning(
                f"{load_type.value} failed for page {page}: {e}",
                extra={"load_type": load_type.value, "page": page},
            )
            return MediatorResult.failure(e, page=page)

    async def _fetch(self, page: int, page_size: int) -> list[NoteEntity]:
        try:
            return await self.remote.fetch(page, page_size)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(page, cause=e) from e

    async def _merge(
        self,
        tx: StoreTransaction,
        load_type: LoadType,
        items: list[NoteEntity],
        page: int,
        end_reached: bool,
    ) -> None:
        if load_type == LoadType.REFRESH:
            await tx.clear_cursors()
            await tx.clear_items()
        elif end_reached:
            # The previous batch was the last non-empty page
            closed = await tx.end_pagination_at(page)
            logger.debug(
                f"Closed pagination on {closed} cursors", extra={"page": page}
            )

        await tx.upsert_cursors(page_cursors(items, page, end_reached))
        await tx.upsert_items(items)
