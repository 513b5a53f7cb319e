"""Snapshot relations read from CSV or Parquet files."""

import asyncio
from pathlib import Path

import pandas as pd

from repocredit.errors import SchemaError
from repocredit.sources.base import DataSource
from repocredit.sources.registry import register

EVENT_COLUMNS = {"actor_id": "author_id", "unit_id": "branch", "period": "min_commit_year"}
ACTOR_COLUMNS = {
    "actor_id": "id",
    "country": "country_cleaned",
    "sector": "sector",
    "organization": "organization_cleaned",
}


def read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix in (".csv", ".txt"):
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    raise SchemaError(path.name, None, f"unsupported file type '{suffix}'")


def select_columns(frame: pd.DataFrame, mapping: dict[str, str], relation: str) -> list[dict]:
    """Rename source columns to field names; a field may already be present
    under its own name."""
    renamed = {}
    for field_name, column in mapping.items():
        if column in frame.columns:
            renamed[column] = field_name
        elif field_name not in frame.columns:
            raise SchemaError(relation, None, f"missing column '{column}'")
    frame = frame.rename(columns=renamed)
    return frame[list(mapping)].to_dict(orient="records")


@register("files")
class FileSource(DataSource):
    """Events and actors from two files, with configurable column names."""

    source_name = "files"

    def __init__(
        self,
        events_path: str | Path,
        actors_path: str | Path,
        event_columns: dict[str, str] | None = None,
        actor_columns: dict[str, str] | None = None,
    ):
        self.events_path = Path(events_path)
        self.actors_path = Path(actors_path)
        self.event_columns = {**EVENT_COLUMNS, **(event_columns or {})}
        self.actor_columns = {**ACTOR_COLUMNS, **(actor_columns or {})}

    async def fetch_events(self) -> list[dict]:
        frame = await asyncio.to_thread(read_frame, self.events_path)
        return select_columns(frame, self.event_columns, "events")

    async def fetch_actors(self) -> list[dict]:
        frame = await asyncio.to_thread(read_frame, self.actors_path)
        return select_columns(frame, self.actor_columns, "actors")
