"""CLI to compute attribution tables and write them to an Excel workbook.

Usage:
    python scripts/run_pipeline.py --list
    python scripts/run_pipeline.py --table total-repos --events events.csv --actors actors.csv
    python scripts/run_pipeline.py --all --year 2023 --local
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute fractional attribution tables")
    parser.add_argument("--table", nargs="+", help="Table preset(s) to compute")
    parser.add_argument("--all", action="store_true", help="Compute every registered table")
    parser.add_argument("--list", action="store_true", help="List table presets and exit")
    parser.add_argument("--year", type=int, help="Single-year tables: the year to report")
    parser.add_argument("--top-n", type=int, help="Ranked tables: number of named rows")
    parser.add_argument("--events", help="Events file (CSV or Parquet); reads the database when omitted")
    parser.add_argument("--actors", help="Actor attributes file (CSV or Parquet)")
    parser.add_argument("--workbook", help="Output workbook (default: settings.output_workbook)")
    parser.add_argument("--local", action="store_true", help="Read from the local SQLite database")
    parser.add_argument(
        "--sqlite-path",
        default="repocredit_local.db",
        help="SQLite file path used with --local (default: repocredit_local.db)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline progress")
    return parser.parse_args()


def configure_local_database(sqlite_path: str) -> Path:
    db_path = Path(sqlite_path).resolve()
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{db_path.as_posix()}"
    return db_path


async def load_snapshot(events_path: str | None, actors_path: str | None):
    if events_path or actors_path:
        if not (events_path and actors_path):
            raise SystemExit("--events and --actors must be given together")
        from repocredit.sources.files import FileSource

        return await FileSource(events_path, actors_path).load()

    from repocredit.sources.database import DatabaseSource

    return await DatabaseSource().load()


def run_tables(names: list[str], args: argparse.Namespace) -> int:
    from repocredit.sinks.excel import ExcelSink
    from repocredit.tables import write_reports

    snapshot = asyncio.run(load_snapshot(args.events, args.actors))
    print(f"Loaded {len(snapshot.events)} events, {len(snapshot.actors)} actors")
    print("=" * 60)

    sink = ExcelSink(args.workbook)
    results = write_reports(names, snapshot, sink, year=args.year, top_n=args.top_n)
    sink.close()

    failed = []
    for result in results:
        if result.error is not None:
            print(f"  FAILED {result.name}: {result.error}")
            failed.append(result.name)
        else:
            print(f"  {result.name:24s} | {len(result.table.rows):3d} rows | {len(result.table.columns):2d} columns")

    print(f"\n{len(names) - len(failed)} tables written to {sink.path}")
    if failed:
        print(f"Failed: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    args = parse_args()
    if args.local:
        configure_local_database(args.sqlite_path)
    if args.verbose:
        import logging

        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    from repocredit.tables import list_tables

    if args.list:
        print("Available tables:")
        for name in list_tables():
            print(f"  - {name}")
        sys.exit(0)

    if args.all:
        names = list_tables()
    elif args.table:
        names = args.table
    else:
        print("Specify --table NAME or --all (use --list to see options)")
        sys.exit(1)

    sys.exit(run_tables(names, args))
