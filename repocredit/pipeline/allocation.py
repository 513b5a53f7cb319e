"""Fractional credit allocation.

Formula:
    actor_credit(a, u) = 1 / |N(u)|
    value_credit(a, u, v) = actor_credit(a, u) / d(a)

N(u) is the actor set of unit u after period resolution; d(a) is the number of
distinct values actor a holds in the split dimension. When two dimensions are
crossed, d(a) = |countries(a)| x |sectors(a)| and every (country, sector) pair
the actor holds receives a share (full cross product).

Worked example:
    U1 has a1 (country {US}) and a2 (country {US, CA})
    a1 -> US: 1/2; a2 -> US: 1/4, CA: 1/4
    US = 3/4, CA = 1/4, sum = 1

All arithmetic is exact (Fraction) so partial sums combine identically in any order.
"""

import itertools
from collections import defaultdict
from collections.abc import Mapping, Sequence
from fractions import Fraction

from repocredit.errors import ConservationViolation, ZeroEligibleActorsError
from repocredit.pipeline.records import ActorCredit, AttributeCredit, Contribution, Dimension


def allocate_actor_credit(unit_id: str, members: Sequence[Contribution]) -> list[ActorCredit]:
    """Split one unit of credit equally across the distinct actors of a unit."""
    actors: dict[str, Contribution] = {}
    for member in members:
        actors.setdefault(member.actor_id, member)
    if not actors:
        raise ZeroEligibleActorsError(unit_id)

    share = Fraction(1, len(actors))
    return [
        ActorCredit(
            unit_id=unit_id,
            actor_id=c.actor_id,
            period=c.period,
            credit=share,
            position=c.position,
        )
        for c in actors.values()
    ]


def split_credit(
    credit: ActorCredit,
    member: Contribution,
    dimensions: Sequence[Dimension],
) -> list[AttributeCredit]:
    """Divide an actor's credit over the cross product of its values."""
    value_sets = [member.attributes.get(dim) for dim in dimensions]
    combinations = list(itertools.product(*value_sets))
    per_value = credit.credit / len(combinations)
    return [
        AttributeCredit(
            unit_id=credit.unit_id,
            actor_id=credit.actor_id,
            dimensions=tuple(dimensions),
            values=combo,
            period=credit.period,
            fraction=per_value,
            position=credit.position,
        )
        for combo in combinations
    ]


def allocate(
    groups: Mapping[str, Sequence[Contribution]],
    dimensions: Sequence[Dimension],
) -> tuple[list[ActorCredit], list[AttributeCredit]]:
    """Allocate credit for every unit; returns actor-level and value-level rows."""
    actor_rows: list[ActorCredit] = []
    value_rows: list[AttributeCredit] = []

    for unit_id, members in groups.items():
        by_actor = {m.actor_id: m for m in reversed(members)}
        for credit in allocate_actor_credit(unit_id, members):
            actor_rows.append(credit)
            value_rows.extend(split_credit(credit, by_actor[credit.actor_id], dimensions))

    return actor_rows, value_rows


def check_conservation(
    actor_rows: Sequence[ActorCredit],
    value_rows: Sequence[AttributeCredit],
    tolerance: float,
) -> None:
    """Raise ConservationViolation unless every unit sums to 1 and every
    actor's value shares sum to its credit."""
    per_unit: dict[str, Fraction] = defaultdict(Fraction)
    per_actor: dict[tuple[str, str], Fraction] = {}
    for row in actor_rows:
        per_unit[row.unit_id] += row.credit
        per_actor[(row.unit_id, row.actor_id)] = row.credit

    for unit_id, total in per_unit.items():
        if abs(total - 1) > tolerance:
            raise ConservationViolation(f"unit {unit_id!r}", 1, total, stage="allocate")

    split_totals: dict[tuple[str, str], Fraction] = defaultdict(Fraction)
    for row in value_rows:
        split_totals[(row.unit_id, row.actor_id)] += row.fraction

    for key, expected in per_actor.items():
        actual = split_totals.get(key, Fraction(0))
        if abs(actual - expected) > tolerance:
            unit_id, actor_id = key
            raise ConservationViolation(
                f"unit {unit_id!r} actor {actor_id!r}", expected, actual, stage="allocate"
            )
