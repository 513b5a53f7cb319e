"""Create the schema and load a snapshot from files in one command.

Modes:
- Default: the database named by DATABASE_URL
- Local: SQLite mode (`--local`) for offline development
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bootstrap the repocredit database")
    parser.add_argument("--events", required=True, help="Events file (CSV or Parquet)")
    parser.add_argument("--actors", required=True, help="Actor attributes file (CSV or Parquet)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Use local SQLite DB (offline dev mode)",
    )
    parser.add_argument(
        "--sqlite-path",
        default="repocredit_local.db",
        help="SQLite file path used with --local (default: repocredit_local.db)",
    )
    return parser.parse_args()


def configure_local_database(sqlite_path: str) -> Path:
    db_path = Path(sqlite_path).resolve()
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{db_path.as_posix()}"
    return db_path


async def bootstrap(events_path: str, actors_path: str) -> tuple[int, int]:
    from repocredit.db.load import store_snapshot
    from repocredit.db.models import Base
    from repocredit.db.session import async_session, engine
    from repocredit.sources.files import FileSource

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    snapshot = await FileSource(events_path, actors_path).load()
    async with async_session() as session:
        written = await store_snapshot(session, snapshot)
    await engine.dispose()
    return written


if __name__ == "__main__":
    args = parse_args()
    try:
        if args.local:
            db_path = configure_local_database(args.sqlite_path)
            print(f"Using local database: {db_path}")
        events, actors = asyncio.run(bootstrap(args.events, args.actors))
        print(f"Loaded {events} events and {actors} actors.")
        print("Database bootstrap complete.")
    except Exception as exc:
        print(f"Database bootstrap failed: {exc}")
        raise
