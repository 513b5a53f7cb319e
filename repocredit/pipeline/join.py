"""Join contribution events to expanded actor attributes.

Join policies:
    inner            -> events of actors without an attribute record are dropped
    outer_with_gate  -> such actors take the missing sentinel, but a unit is kept
                        only if at least one of its actors resolves a real value
    strict           -> such events raise MissingJoinKeyError
"""

import enum
import logging
from collections.abc import Iterable, Mapping, Sequence

from repocredit.errors import MissingJoinKeyError
from repocredit.pipeline.records import ActorAttributes, Contribution, Dimension
from repocredit.sources.base import ContributionEvent

logger = logging.getLogger(__name__)


class JoinPolicy(str, enum.Enum):
    INNER = "inner"
    OUTER_WITH_GATE = "outer_with_gate"
    STRICT = "strict"


def passes_actor_filter(
    attributes: ActorAttributes | None,
    actor_filter: Mapping[Dimension, Sequence[str]],
) -> bool:
    """An actor passes when, for every filtered dimension, it holds a listed value."""
    if not actor_filter:
        return True
    if attributes is None:
        return False
    return all(attributes.holds_any(dim, set(wanted)) for dim, wanted in actor_filter.items())


def join_contributions(
    events: Iterable[ContributionEvent],
    attributes: Mapping[str, ActorAttributes],
    policy: JoinPolicy = JoinPolicy.INNER,
    gate_dimension: Dimension = Dimension.COUNTRY,
    actor_filter: Mapping[Dimension, Sequence[str]] | None = None,
) -> list[Contribution]:
    """Return one Contribution per surviving event, in input order."""
    actor_filter = actor_filter or {}
    joined: list[Contribution] = []
    unmatched = 0
    filtered = 0

    for position, event in enumerate(events):
        actor = attributes.get(event.actor_id)
        if actor is None:
            if policy == JoinPolicy.STRICT:
                raise MissingJoinKeyError(event.actor_id, event.unit_id)
            unmatched += 1
            if policy == JoinPolicy.INNER or actor_filter:
                continue
            joined.append(
                Contribution(
                    unit_id=event.unit_id,
                    actor_id=event.actor_id,
                    period=event.period,
                    position=position,
                    attributes=ActorAttributes(actor_id=event.actor_id),
                    matched=False,
                )
            )
            continue

        if not passes_actor_filter(actor, actor_filter):
            filtered += 1
            continue

        joined.append(
            Contribution(
                unit_id=event.unit_id,
                actor_id=event.actor_id,
                period=event.period,
                position=position,
                attributes=actor,
            )
        )

    if unmatched:
        logger.info("join: %d events reference actors without attributes (%s)", unmatched, policy.value)
    if filtered:
        logger.info("join: %d events removed by actor filter", filtered)

    if policy == JoinPolicy.OUTER_WITH_GATE:
        joined = apply_unit_gate(joined, gate_dimension)
    return joined


def apply_unit_gate(
    contributions: Sequence[Contribution],
    dimension: Dimension,
) -> list[Contribution]:
    """Keep only units where at least one actor resolves a non-missing value."""
    signal_units = {c.unit_id for c in contributions if c.attributes.resolves(dimension)}
    kept = [c for c in contributions if c.unit_id in signal_units]
    dropped_units = {c.unit_id for c in contributions} - signal_units
    if dropped_units:
        logger.info("join: gate dropped %d units with no resolvable %s", len(dropped_units), dimension.value)
    return kept
