"""Earliest-period resolution per unit (and per unit x grouping key).

Unrestricted crediting uses every actor on a unit. Earliest-cohort crediting
keeps only the actors whose own first period on the unit equals the unit's
minimum period; it changes the allocation denominator, so it runs before
allocation.

Units whose real first activity predates the window get their minimum from
the first period inside the window.
"""

from collections.abc import Iterable, Sequence

from repocredit.pipeline.records import Contribution, Dimension
from repocredit.sources.base import ContributionEvent


def within_period_range(
    events: Iterable[ContributionEvent],
    period_range: tuple[int, int] | None,
) -> list[ContributionEvent]:
    if period_range is None:
        return list(events)
    start, end = period_range
    return [e for e in events if start <= e.period <= end]


def unit_min_periods(contributions: Iterable[Contribution]) -> dict[str, int]:
    minimum: dict[str, int] = {}
    for c in contributions:
        current = minimum.get(c.unit_id)
        if current is None or c.period < current:
            minimum[c.unit_id] = c.period
    return minimum


def keyed_min_periods(
    contributions: Iterable[Contribution],
    dimension: Dimension,
) -> dict[tuple[str, str], int]:
    """Minimum period per (unit, value of ``dimension``).

    Several values may share a unit's minimum; no tie-break is applied.
    """
    minimum: dict[tuple[str, str], int] = {}
    for c in contributions:
        for value in c.attributes.get(dimension):
            key = (c.unit_id, value)
            current = minimum.get(key)
            if current is None or c.period < current:
                minimum[key] = c.period
    return minimum


def earliest_cohort(contributions: Sequence[Contribution]) -> list[Contribution]:
    minimum = unit_min_periods(contributions)
    return [c for c in contributions if c.period == minimum[c.unit_id]]


def group_by_unit(
    contributions: Iterable[Contribution],
    earliest_cohort_only: bool = False,
) -> dict[str, list[Contribution]]:
    """Actor sets used for crediting, keyed by unit in first-seen order."""
    contributions = list(contributions)
    if earliest_cohort_only:
        contributions = earliest_cohort(contributions)

    groups: dict[str, list[Contribution]] = {}
    for c in contributions:
        groups.setdefault(c.unit_id, []).append(c)
    return groups
