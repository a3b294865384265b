"""Scroll the paged notes feed end to end against the simulated API.

Opens a repository on a SQLite file (or memory), then keeps accessing the
last visible note until the append edge reports the end of pagination,
printing every window generation and the load states along the way.

Usage:
    python scripts/demo_paging.py [--db notes.db] [--pages 5] [--latency 0.2]
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from notes_sync import NoteRepository, SimulatedNoteApi, SQLiteNoteStore, SQLiteStoreConfig
from notes_sync.logging_utils import configure_structured_logging, get_sync_logger
from notes_sync.paging import Window

logger = get_sync_logger("demo")


def _print_window(window: Window) -> None:
    states = window.load_states
    first = window.items[0].id if window.items else "-"
    last = window.items[-1].id if window.items else "-"
    print(
        f"gen={window.generation:<3} notes={len(window):<3} ids={first}..{last}  "
        f"refresh={states.refresh.status.value:<8} "
        f"append={states.append.status.value}"
        f"{' (end)' if states.append.end_of_pagination_reached else ''}"
    )


async def run(db_path: str, pages: int, latency: float, page_size: int) -> int:
    store = await SQLiteNoteStore.create(SQLiteStoreConfig(db_path=db_path))
    remote = SimulatedNoteApi(total_pages=pages, latency=latency)
    repository = NoteRepository(store, remote)

    try:
        async with repository.open(page_size=page_size) as stream:
            stream.subscribe(_print_window)
            _print_window(stream.current_window())

            while True:
                if stream.load_state().append.is_error:
                    logger.warning(f"append failed, retrying: {stream.load_state().append.error}")
                    await stream.retry()
                    continue

                window = stream.current_window()
                if stream.load_state().append.end_of_pagination_reached and not window.has_more_after:
                    break
                await stream.access(len(window) - 1)

            print(f"Reached the end with {len(stream.current_window())} notes")
    finally:
        await remote.close()
        await store.close()

    print(f"Remote fetches: {remote.fetch_count}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Scroll the paged notes feed against the simulated notes API.",
    )
    parser.add_argument("--db", default=":memory:", help="SQLite database path")
    parser.add_argument("--pages", type=int, default=5, help="Non-empty remote pages")
    parser.add_argument("--page-size", type=int, default=5, help="Notes per page")
    parser.add_argument("--latency", type=float, default=0.2, help="Simulated latency (s)")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")
    args = parser.parse_args()

    if args.json_logs:
        configure_structured_logging(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s  %(message)s")

    raise SystemExit(asyncio.run(run(args.db, args.pages, args.latency, args.page_size)))


if __name__ == "__main__":
    main()
