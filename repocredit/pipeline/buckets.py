"""Aggregation of credit into category totals and top-N bucketing.

Display structure:
    named rows  -> top N categories by overall total (ties: first encountered)
                   or an explicit category list
    All Other   -> every remaining non-missing category, summed
    Missing     -> the dimension's sentinel, never folded into All Other

Bucket completeness: for every period,
    sum(named) + All Other + Missing == grand total of actor credit
"""

from collections.abc import Callable, Collection, Iterable, Sequence
from dataclasses import dataclass, field
from fractions import Fraction

from repocredit.errors import AmbiguousBucketOverlap, ConservationViolation
from repocredit.pipeline.periods import keyed_min_periods
from repocredit.pipeline.records import (
    ActorCredit,
    AttributeCredit,
    Contribution,
    Dimension,
)

Period = int | None


@dataclass
class CategoryTotals:
    """Sums keyed by (category, period), with first-encountered positions."""

    by_period: bool = True
    totals: dict[tuple[str, Period], Fraction] = field(default_factory=dict)
    first_seen: dict[str, int] = field(default_factory=dict)

    def add(self, category: str, period: int, amount: Fraction, position: int) -> None:
        key = (category, period if self.by_period else None)
        self.totals[key] = self.totals.get(key, Fraction(0)) + amount
        seen = self.first_seen.get(category)
        if seen is None or position < seen:
            self.first_seen[category] = position

    def merge(self, other: "CategoryTotals") -> "CategoryTotals":
        """Combine two partial summaries; the result does not depend on order."""
        merged = CategoryTotals(by_period=self.by_period, totals=dict(self.totals), first_seen=dict(self.first_seen))
        for (category, period), amount in other.totals.items():
            merged.totals[(category, period)] = merged.totals.get((category, period), Fraction(0)) + amount
        for category, position in other.first_seen.items():
            seen = merged.first_seen.get(category)
            if seen is None or position < seen:
                merged.first_seen[category] = position
        return merged

    def categories(self) -> list[str]:
        return sorted(self.first_seen, key=self.first_seen.__getitem__)

    def overall(self) -> dict[str, Fraction]:
        """Total per category summed across periods."""
        overall: dict[str, Fraction] = {}
        for (category, _), amount in self.totals.items():
            overall[category] = overall.get(category, Fraction(0)) + amount
        return overall

    def series(self, category: str) -> dict[Period, Fraction]:
        return {p: v for (c, p), v in self.totals.items() if c == category}


def add_series(*series: dict[Period, Fraction]) -> dict[Period, Fraction]:
    combined: dict[Period, Fraction] = {}
    for s in series:
        for period, amount in s.items():
            combined[period] = combined.get(period, Fraction(0)) + amount
    return combined


def summarize_credit(
    rows: Iterable[AttributeCredit],
    dimension: Dimension,
    by_period: bool = True,
    where: Callable[[AttributeCredit], bool] | None = None,
) -> CategoryTotals:
    """Sum value-level credit by (value of ``dimension``, period)."""
    totals = CategoryTotals(by_period=by_period)
    for row in rows:
        if where is not None and not where(row):
            continue
        totals.add(row.value_of(dimension), row.period, row.fraction, row.position)
    return totals


def grand_total(actor_rows: Iterable[ActorCredit], by_period: bool = True) -> dict[Period, Fraction]:
    """Independent total: actor credit before any per-dimension split."""
    totals: dict[Period, Fraction] = {}
    for row in actor_rows:
        key = row.period if by_period else None
        totals[key] = totals.get(key, Fraction(0)) + row.credit
    return totals


def summarize_units(
    contributions: Iterable[Contribution],
    dimension: Dimension,
    by_period: bool = True,
) -> CategoryTotals:
    """Count distinct units per value, each in the minimum period of its
    (unit, value) pair. Ties rank by the pair's first input position."""
    contributions = list(contributions)
    first_position: dict[tuple[str, str], int] = {}
    for c in contributions:
        for value in c.attributes.get(dimension):
            key = (c.unit_id, value)
            if key not in first_position or c.position < first_position[key]:
                first_position[key] = c.position

    totals = CategoryTotals(by_period=by_period)
    for (unit_id, value), period in keyed_min_periods(contributions, dimension).items():
        totals.add(value, period, Fraction(1), first_position[(unit_id, value)])
    return totals


def count_units(
    contributions: Iterable[Contribution],
    by_period: bool = True,
    accept: Callable[[Contribution], bool] | None = None,
) -> dict[Period, Fraction]:
    """Distinct units counted once in the earliest period of their accepted
    contributions."""
    earliest: dict[str, int] = {}
    for c in contributions:
        if accept is not None and not accept(c):
            continue
        current = earliest.get(c.unit_id)
        if current is None or c.period < current:
            earliest[c.unit_id] = c.period

    counts: dict[Period, Fraction] = {}
    for period in earliest.values():
        key = period if by_period else None
        counts[key] = counts.get(key, Fraction(0)) + 1
    return counts


def select_top(
    totals: CategoryTotals,
    top_n: int | None,
    exclude: Collection[str] = (),
) -> list[str]:
    """Rank categories by overall total, descending; ties keep first-seen order."""
    overall = totals.overall()
    candidates = [c for c in totals.categories() if c not in exclude]
    ranked = sorted(candidates, key=lambda c: -overall[c])
    return ranked if top_n is None else ranked[:top_n]


@dataclass(frozen=True)
class Buckets:
    named: tuple[str, ...]
    other: tuple[str, ...]
    missing: str | None


def bucketize(
    totals: CategoryTotals,
    missing_value: str,
    top_n: int | None = None,
    categories: Sequence[str] | None = None,
) -> Buckets:
    """Split categories into named, All Other and Missing buckets."""
    present = totals.categories()
    if categories is not None:
        named = [c for c in categories if c != missing_value]
    else:
        named = select_top(totals, top_n, exclude={missing_value})
    named_set = set(named)
    other = tuple(c for c in present if c not in named_set and c != missing_value)
    missing = missing_value if missing_value in totals.first_seen else None

    buckets = Buckets(named=tuple(named), other=other, missing=missing)
    check_disjoint(buckets)
    return buckets


def check_disjoint(buckets: Buckets) -> None:
    placements: dict[str, list[str]] = {}
    for name, members in (
        ("named", buckets.named),
        ("All Other", buckets.other),
        ("Missing", (buckets.missing,) if buckets.missing else ()),
    ):
        for category in members:
            placements.setdefault(category, []).append(name)
    for category, where in placements.items():
        if len(where) > 1:
            raise AmbiguousBucketOverlap(category, tuple(where))


def bucket_series(totals: CategoryTotals, members: Iterable[str]) -> dict[Period, Fraction]:
    return add_series(*(totals.series(c) for c in members))


def check_completeness(
    totals: CategoryTotals,
    buckets: Buckets,
    expected: dict[Period, Fraction],
    tolerance: float,
) -> None:
    """Named + All Other + Missing must reproduce the grand total per period."""
    members = list(buckets.named) + list(buckets.other)
    if buckets.missing:
        members.append(buckets.missing)
    actual = bucket_series(totals, members)

    for period in sorted(set(actual) | set(expected), key=lambda p: (p is None, p or 0)):
        got = actual.get(period, Fraction(0))
        want = expected.get(period, Fraction(0))
        if abs(got - want) > tolerance:
            label = "overall" if period is None else f"period {period}"
            raise ConservationViolation(f"bucket total for {label}", want, got, stage="bucketize")
