"""Base data-source interface and the immutable input snapshot."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from repocredit.errors import SchemaError
from repocredit.pipeline.records import Dimension

logger = logging.getLogger(__name__)


def _clean_identifier(value):
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"identifier {value!r} is not integral")
        value = str(int(value))
    elif isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("identifier is empty")
    return value


class ContributionEvent(BaseModel):
    """An actor contributing to a unit in a period (integer year)."""

    model_config = ConfigDict(frozen=True)

    actor_id: str
    unit_id: str
    period: int

    @field_validator("actor_id", "unit_id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _clean_identifier(value)


class ActorRecord(BaseModel):
    """Raw attribute fields for one actor, each a delimiter-separated string."""

    model_config = ConfigDict(frozen=True)

    actor_id: str
    country: str = ""
    sector: str = ""
    organization: str = ""

    @field_validator("actor_id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _clean_identifier(value)

    @field_validator("country", "sector", "organization", mode="before")
    @classmethod
    def blank_nulls(cls, value):
        # pandas hands over NaN for empty cells
        if value is None or (isinstance(value, float) and value != value):
            return ""
        return value

    def raw_value(self, dimension: Dimension) -> str:
        return getattr(self, dimension.value)


def _validate_rows(model: type[BaseModel], relation: str, rows: Iterable) -> list:
    validated = []
    for index, row in enumerate(rows):
        if isinstance(row, model):
            validated.append(row)
            continue
        try:
            validated.append(model.model_validate(dict(row)))
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(part) for part in first["loc"])
            raise SchemaError(relation, index, f"{loc}: {first['msg']}") from exc
        except (TypeError, ValueError) as exc:
            raise SchemaError(relation, index, str(exc)) from exc
    return validated


@dataclass(frozen=True)
class Snapshot:
    """Fixed pair of input relations for one run.

    Events carry one row per (actor_id, unit_id) holding the minimum period;
    actors carry one row per actor_id.
    """

    events: tuple[ContributionEvent, ...]
    actors: tuple[ActorRecord, ...]

    @classmethod
    def build(
        cls,
        events: Iterable[ContributionEvent | Mapping],
        actors: Iterable[ActorRecord | Mapping],
    ) -> "Snapshot":
        checked_events = _validate_rows(ContributionEvent, "events", events)
        checked_actors = _validate_rows(ActorRecord, "actors", actors)

        earliest: dict[tuple[str, str], ContributionEvent] = {}
        for event in checked_events:
            key = (event.actor_id, event.unit_id)
            current = earliest.get(key)
            if current is None or event.period < current.period:
                earliest[key] = event
        if len(earliest) != len(checked_events):
            logger.info(
                "Collapsed %d events to %d (actor, unit) minimum periods",
                len(checked_events),
                len(earliest),
            )

        seen: set[str] = set()
        for index, actor in enumerate(checked_actors):
            if actor.actor_id in seen:
                raise SchemaError("actors", index, f"duplicate actor_id {actor.actor_id!r}")
            seen.add(actor.actor_id)

        return cls(events=tuple(earliest.values()), actors=tuple(checked_actors))

    def merge(self, other: "Snapshot") -> "Snapshot":
        """Union with ``other``; rows already present here take precedence."""
        actor_ids = {a.actor_id for a in self.actors}
        event_keys = {(e.actor_id, e.unit_id) for e in self.events}
        actors = self.actors + tuple(a for a in other.actors if a.actor_id not in actor_ids)
        events = self.events + tuple(
            e for e in other.events if (e.actor_id, e.unit_id) not in event_keys
        )
        return Snapshot(events=events, actors=actors)


class DataSource(ABC):
    """Abstract upstream collaborator yielding events and actor attributes."""

    source_name: str

    @abstractmethod
    async def fetch_events(self) -> list[dict]:
        """Return raw contribution event rows (actor_id, unit_id, period)."""
        ...

    @abstractmethod
    async def fetch_actors(self) -> list[dict]:
        """Return raw actor attribute rows (actor_id, country, sector, organization)."""
        ...

    async def load(self) -> Snapshot:
        events = await self.fetch_events()
        actors = await self.fetch_actors()
        logger.info("%s: %d events, %d actors", self.source_name, len(events), len(actors))
        return Snapshot.build(events, actors)
