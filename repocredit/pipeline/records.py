"""Relation row types shared by the pipeline stages."""

import enum
from dataclasses import dataclass, field
from fractions import Fraction

from repocredit.config import settings
from repocredit.errors import SchemaError


class Dimension(str, enum.Enum):
    COUNTRY = "country"
    SECTOR = "sector"
    ORGANIZATION = "organization"


def missing_label(dimension: Dimension) -> str:
    """Sentinel value an actor holds when it has nothing in ``dimension``."""
    return {
        Dimension.COUNTRY: settings.missing_country,
        Dimension.SECTOR: settings.missing_sector,
        Dimension.ORGANIZATION: settings.missing_organization,
    }[dimension]


@dataclass(frozen=True)
class AttributeValue:
    """One atomic (actor, dimension, value) tuple produced by the expander."""

    actor_id: str
    dimension: Dimension
    value: str
    is_missing: bool = False

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise SchemaError(
                "expanded_attributes",
                None,
                f"actor {self.actor_id!r} has an empty {self.dimension.value} value",
                stage="expand",
            )


@dataclass(frozen=True)
class ActorAttributes:
    """Deduplicated values per dimension for one actor, in first-seen order."""

    actor_id: str
    values: dict[Dimension, tuple[str, ...]] = field(default_factory=dict)

    def get(self, dimension: Dimension) -> tuple[str, ...]:
        return self.values.get(dimension) or (missing_label(dimension),)

    def resolves(self, dimension: Dimension) -> bool:
        """True when the actor holds at least one non-missing value."""
        sentinel = missing_label(dimension)
        return any(v != sentinel for v in self.get(dimension))

    def holds_any(self, dimension: Dimension, wanted) -> bool:
        return any(v in wanted for v in self.get(dimension))


@dataclass(frozen=True)
class Contribution:
    """A contribution event joined to its actor's attributes."""

    unit_id: str
    actor_id: str
    period: int
    position: int  # index of the event in the source relation
    attributes: ActorAttributes
    matched: bool = True


@dataclass(frozen=True)
class ActorCredit:
    unit_id: str
    actor_id: str
    period: int
    credit: Fraction
    position: int


@dataclass(frozen=True)
class AttributeCredit:
    """Share of one actor's credit assigned to one value (or value combination)."""

    unit_id: str
    actor_id: str
    dimensions: tuple[Dimension, ...]
    values: tuple[str, ...]
    period: int
    fraction: Fraction
    position: int

    def value_of(self, dimension: Dimension) -> str:
        return self.values[self.dimensions.index(dimension)]


@dataclass(frozen=True)
class CategorySummary:
    category: str
    period: int | None  # None for the no-period "overall" grouping
    total: Fraction
