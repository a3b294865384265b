"""
SQLite notes store.

Uses aiosqlite so store operations suspend the caller instead of blocking
the event loop. Ideal for on-device caches and testing (":memory:").
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from ..exceptions import StorageConnectionError, StoreError
from ..logging_utils import get_sync_logger
from ..models import NoteEntity, PageCursor
from .base import InvalidationListener, LocalStore, StoreTransaction

logger = get_sync_logger("store.sqlite")

T = TypeVar("T")


# =============================================================================
# Schema
# =============================================================================

ITEM_READ_COLUMNS = ("id", "title", "content")

CURSOR_READ_COLUMNS = ("item_id", "prev_page", "next_page")

# The cursor foreign key is deferred so a merge may write cursors before
# their notes; it is still enforced when the scope commits.
_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS items (
    id INTEGER NOT NULL PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cursors (
    item_id INTEGER NOT NULL PRIMARY KEY
        REFERENCES items (id) DEFERRABLE INITIALLY DEFERRED,
    prev_page INTEGER,
    next_page INTEGER
);
"""

_SELECT_WINDOW_SQL = (
    f"SELECT {', '.join(ITEM_READ_COLUMNS)} FROM items ORDER BY id ASC LIMIT ? OFFSET ?"
)

_SELECT_CURSOR_SQL = f"SELECT {', '.join(CURSOR_READ_COLUMNS)} FROM cursors WHERE item_id = ?"

_SELECT_LAST_CURSOR_SQL = (
    f"SELECT {', '.join(CURSOR_READ_COLUMNS)} FROM cursors "
    "WHERE item_id = (SELECT MAX(id) FROM items)"
)


@dataclass
class SQLiteStoreConfig:
    """Configuration for the SQLite notes store."""

    db_path: str | Path = ":memory:"

    @classmethod
    def from_env(cls) -> SQLiteStoreConfig:
        """Create config from environment variables."""
        return cls(db_path=os.environ.get("NOTES_SYNC_DB_PATH", ":memory:"))


def _row_to_note(row: Any) -> NoteEntity:
    return NoteEntity(id=row[0], title=row[1], content=row[2])


def _row_to_cursor(row: Any) -> PageCursor:
    return PageCursor(item_id=row[0], prev_page=row[1], next_page=row[2])


async def _fetch_window(conn: aiosqlite.Connection, offset: int, limit: int) -> list[NoteEntity]:
    if offset < 0 or limit < 0:
        raise StoreError("query_window", ValueError(f"invalid window {offset}+{limit}"))
    async with conn.execute(_SELECT_WINDOW_SQL, (limit, offset)) as cursor:
        rows = await cursor.fetchall()
    return [_row_to_note(row) for row in rows]


async def _fetch_cursor(conn: aiosqlite.Connection, sql: str, params: tuple) -> PageCursor | None:
    async with conn.execute(sql, params) as cursor:
        row = await cursor.fetchone()
    return _row_to_cursor(row) if row else None


class _SQLiteTransaction(StoreTransaction):
    """Write handle bound to an open SQLite transaction."""

    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn
        self.items_changed = False

    async def upsert_items(self, items: Sequence[NoteEntity]) -> None:
        if not items:
            return
        try:
            await self.conn.executemany(
                """
                INSERT INTO items (id, title, content) VALUES (?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    title = excluded.title,
                    content = excluded.content
                """,
                [(item.id, item.title, item.content) for item in items],
            )
        except aiosqlite.Error as e:
            raise StoreError("upsert_items", e) from e
        self.items_changed = True

    async def clear_items(self) -> None:
        try:
            await self.conn.execute("DELETE FROM items")
        except aiosqlite.Error as e:
            raise StoreError("clear_items", e) from e
        self.items_changed = True

    async def upsert_cursors(self, cursors: Sequence[PageCursor]) -> None:
        if not cursors:
            return
        try:
            await self.conn.executemany(
                """
                INSERT INTO cursors (item_id, prev_page, next_page) VALUES (?, ?, ?)
                ON CONFLICT (item_id) DO UPDATE SET
                    prev_page = excluded.prev_page,
                    next_page = excluded.next_page
                """,
                [(c.item_id, c.prev_page, c.next_page) for c in cursors],
            )
        except aiosqlite.Error as e:
            raise StoreError("upsert_cursors", e) from e

    async def clear_cursors(self) -> None:
        try:
            await self.conn.execute("DELETE FROM cursors")
        except aiosqlite.Error as e:
            raise StoreError("clear_cursors", e) from e

    async def end_pagination_at(self, page: int) -> int:
        try:
            cursor = await self.conn.execute(
                "UPDATE cursors SET next_page = NULL WHERE next_page = ?", (page,)
            )
        except aiosqlite.Error as e:
            raise StoreError("end_pagination_at", e) from e
        return cursor.rowcount

    async def query_window(self, offset: int, limit: int) -> list[NoteEntity]:
        return await _fetch_window(self.conn, offset, limit)

    async def cursor_for(self, item_id: int) -> PageCursor | None:
        return await _fetch_cursor(self.conn, _SELECT_CURSOR_SQL, (item_id,))

    async def last_cursor(self) -> PageCursor | None:
        return await _fetch_cursor(self.conn, _SELECT_LAST_CURSOR_SQL, ())


class SQLiteNoteStore(LocalStore):
    """
    SQLite-backed local store.

    Features:
    - Single file database (or in-memory for tests)
    - Explicit schema with parameterized queries
    - One asyncio.Lock as the transaction boundary; reads share it, so a
      reader sees either the state before a scope or after it, never between
    - Generation counter and listeners for reader invalidation
    """

    def __init__(self, config: SQLiteStoreConfig):
        """
        Initialize SQLite store.

        Args:
            config: SQLite configuration
        """
        self.config = config
        self.conn: aiosqlite.Connection | None = None
        self._initialized = False
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self._generation = 0
        self._listeners: list[InvalidationListener] = []

    @classmethod
    async def create(cls, config: SQLiteStoreConfig | None = None) -> SQLiteNoteStore:
        """Create and initialize SQLite store."""
        if config is None:
            config = SQLiteStoreConfig.from_env()

        store = cls(config)
        await store.initialize()
        return store

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        if self._initialized:
            return

        try:
            # Autocommit mode; transactions are opened explicitly in run_atomic
            self.conn = await aiosqlite.connect(str(self.config.db_path), isolation_level=None)
            await self.conn.execute("PRAGMA foreign_keys = ON")
            await self.conn.executescript(_CREATE_SCHEMA_SQL)
            self._initialized = True
            logger.info(f"SQLite notes store initialized: {self.config.db_path}")
        except Exception as e:
            if self.conn is not None:
                await self.conn.close()
                self.conn = None
            raise StorageConnectionError(str(self.config.db_path), e) from e

    async def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None

        self._listeners.clear()
        self._initialized = False

    async def __aenter__(self) -> SQLiteNoteStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _require_conn(self, operation: str) -> aiosqlite.Connection:
        if self.conn is None:
            raise StoreError(operation, RuntimeError("Not initialized"))
        # The lock is not reentrant; nested use from inside a scope would deadlock
        if self._owner is not None and self._owner is asyncio.current_task():
            raise StoreError(
                operation,
                RuntimeError("store used from inside run_atomic; use the transaction handle"),
            )
        return self.conn

    # =========================================================================
    # Atomic scope
    # =========================================================================

    async def run_atomic(self, work: Callable[[StoreTransaction], Awaitable[T]]) -> T:
        """Run work in one IMMEDIATE transaction, rolling back on any failure.

        Once COMMIT has been issued it always completes. A cancellation that
        arrives during the commit is re-raised only after the generation has
        been bumped and listeners notified.
        """
        conn = self._require_conn("run_atomic")
        cancelled: asyncio.CancelledError | None = None

        async with self._lock:
            self._owner = asyncio.current_task()
            tx = _SQLiteTransaction(conn)
            try:
                try:
                    await conn.execute("BEGIN IMMEDIATE")
                    result = await work(tx)
                except BaseException:
                    # Also covers cancellation before COMMIT is issued
                    await self._rollback(conn)
                    raise
                try:
                    cancelled = await self._commit(conn)
                except aiosqlite.Error:
                    # A failed COMMIT (deferred FK violation) leaves the transaction open
                    await self._rollback(conn)
                    raise
            except aiosqlite.Error as e:
                raise StoreError("run_atomic", e) from e
            finally:
                self._owner = None

            if tx.items_changed:
                self._generation += 1
            generation = self._generation

        if tx.items_changed:
            self._notify(generation)
        if cancelled is not None:
            raise cancelled
        return result

    async def _commit(self, conn: aiosqlite.Connection) -> asyncio.CancelledError | None:
        """Commit to completion; returns a cancellation received meanwhile."""
        commit = asyncio.ensure_future(conn.commit())
        cancelled: asyncio.CancelledError | None = None
        while True:
            try:
                await asyncio.shield(commit)
                return cancelled
            except asyncio.CancelledError as e:
                if commit.cancelled():
                    raise
                logger.debug("Cancelled during commit; finishing the commit first")
                cancelled = e

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        if conn.in_transaction:
            await conn.rollback()
            logger.debug("Atomic scope rolled back")

    # =========================================================================
    # Reads
    # =========================================================================

    async def query_window(self, offset: int, limit: int) -> list[NoteEntity]:
        conn = self._require_conn("query_window")
        async with self._lock:
            try:
                return await _fetch_window(conn, offset, limit)
            except aiosqlite.Error as e:
                raise StoreError("query_window", e) from e

    async def count_items(self) -> int:
        conn = self._require_conn("count_items")
        async with self._lock:
            try:
                async with conn.execute("SELECT COUNT(*) FROM items") as cursor:
                    row = await cursor.fetchone()
            except aiosqlite.Error as e:
                raise StoreError("count_items", e) from e
        return row[0] if row else 0

    async def cursor_for(self, item_id: int) -> PageCursor | None:
        conn = self._require_conn("cursor_for")
        async with self._lock:
            try:
                return await _fetch_cursor(conn, _SELECT_CURSOR_SQL, (item_id,))
            except aiosqlite.Error as e:
                raise StoreError("cursor_for", e) from e

    async def last_cursor(self) -> PageCursor | None:
        conn = self._require_conn("last_cursor")
        async with self._lock:
            try:
                return await _fetch_cursor(conn, _SELECT_LAST_CURSOR_SQL, ())
            except aiosqlite.Error as e:
                raise StoreError("last_cursor", e) from e

    async def list_cursors(self) -> list[PageCursor]:
        """Read every cursor ordered by item id."""
        conn = self._require_conn("list_cursors")
        async with self._lock:
            try:
                async with conn.execute(
                    f"SELECT {', '.join(CURSOR_READ_COLUMNS)} FROM cursors ORDER BY item_id ASC"
                ) as cursor:
                    rows = await cursor.fetchall()
            except aiosqlite.Error as e:
                raise StoreError("list_cursors", e) from e
        return [_row_to_cursor(row) for row in rows]

    # =========================================================================
    # Invalidation
    # =========================================================================

    @property
    def generation(self) -> int:
        return self._generation

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        self._listeners.append(listener)

    def remove_invalidation_listener(self, listener: InvalidationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, generation: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(generation)
            except Exception:
                # The scope is already committed; a bad listener must not undo that
                logger.exception(
                    "Invalidation listener failed", extra={"generation": generation}
                )
