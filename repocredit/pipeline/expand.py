"""Attribute expansion: multi-valued raw fields to atomic values.

Each raw field is a delimiter-separated string such as
``"United States, Canada, United States"``. Values are trimmed and exact
duplicates dropped per actor, keeping first-seen order. A field that is empty
after trimming yields the dimension's missing sentinel, so every actor holds at
least one value in every dimension.
"""

import logging
from collections.abc import Iterable

from repocredit.config import settings
from repocredit.pipeline.records import (
    ActorAttributes,
    AttributeValue,
    Dimension,
    missing_label,
)
from repocredit.sources.base import ActorRecord

logger = logging.getLogger(__name__)


def split_values(raw: str | None, delimiter: str | None = None) -> tuple[str, ...]:
    """Split, trim and deduplicate one raw field. Empty pieces are dropped."""
    if raw is None:
        return ()
    delimiter = delimiter or settings.value_delimiter
    values: list[str] = []
    for piece in raw.split(delimiter):
        piece = piece.strip()
        if piece and piece not in values:
            values.append(piece)
    return tuple(values)


def expand_field(
    actor_id: str,
    dimension: Dimension,
    raw: str | None,
    delimiter: str | None = None,
) -> list[AttributeValue]:
    values = split_values(raw, delimiter)
    if not values:
        return [AttributeValue(actor_id, dimension, missing_label(dimension), is_missing=True)]
    sentinel = missing_label(dimension)
    return [AttributeValue(actor_id, dimension, v, is_missing=(v == sentinel)) for v in values]


def expand_actors(
    actors: Iterable[ActorRecord],
    dimensions: Iterable[Dimension] = tuple(Dimension),
    delimiter: str | None = None,
) -> list[AttributeValue]:
    """Long-format expansion: one row per (actor, dimension, value)."""
    dimensions = tuple(dimensions)
    rows: list[AttributeValue] = []
    for actor in actors:
        for dimension in dimensions:
            rows.extend(expand_field(actor.actor_id, dimension, actor.raw_value(dimension), delimiter))
    return rows


def index_attributes(rows: Iterable[AttributeValue]) -> dict[str, ActorAttributes]:
    """Collect long-format rows into one ActorAttributes per actor."""
    grouped: dict[str, dict[Dimension, list[str]]] = {}
    for row in rows:
        values = grouped.setdefault(row.actor_id, {}).setdefault(row.dimension, [])
        if row.value not in values:
            values.append(row.value)

    return {
        actor_id: ActorAttributes(
            actor_id=actor_id,
            values={dim: tuple(vals) for dim, vals in by_dim.items()},
        )
        for actor_id, by_dim in grouped.items()
    }


def build_attribute_index(
    actors: Iterable[ActorRecord],
    dimensions: Iterable[Dimension] = tuple(Dimension),
    delimiter: str | None = None,
) -> dict[str, ActorAttributes]:
    rows = expand_actors(actors, dimensions, delimiter)
    index = index_attributes(rows)
    missing = sum(1 for r in rows if r.is_missing)
    logger.debug("Expanded %d actors into %d values (%d missing)", len(index), len(rows), missing)
    return index
