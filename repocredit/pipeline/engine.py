"""Single parameterized table engine.

    run(config, snapshot) -> Table

Stages: expand -> join -> resolve periods -> allocate -> aggregate/bucketize
-> pivot. Units are split into ``config.partitions`` partitions; each yields a
partial summary and the partials are merged exactly, so results do not depend
on the partitioning.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from fractions import Fraction

from repocredit.config import settings
from repocredit.errors import AmbiguousBucketOverlap
from repocredit.pipeline.allocation import allocate, check_conservation
from repocredit.pipeline.buckets import (
    CategoryTotals,
    add_series,
    bucket_series,
    bucketize,
    check_completeness,
    count_units,
    grand_total,
    summarize_credit,
    summarize_units,
)
from repocredit.pipeline.collaboration import collaboration_counts, pair_counts, unit_profiles
from repocredit.pipeline.expand import build_attribute_index
from repocredit.pipeline.join import join_contributions
from repocredit.pipeline.options import Measure, TableConfig
from repocredit.pipeline.periods import earliest_cohort, group_by_unit, within_period_range
from repocredit.pipeline.pivot import Table, TableRow, period_columns, pivot
from repocredit.pipeline.records import CategorySummary, Contribution, Dimension, missing_label
from repocredit.sources.base import DataSource, Snapshot

logger = logging.getLogger(__name__)

Series = dict[int | None, Fraction]


@dataclass
class PartialSummary:
    """Per-partition aggregates, combined by ``merge``."""

    categories: CategoryTotals
    total: Series = field(default_factory=dict)
    selections: list[Series] = field(default_factory=list)

    def merge(self, other: "PartialSummary") -> "PartialSummary":
        return PartialSummary(
            categories=self.categories.merge(other.categories),
            total=add_series(self.total, other.total),
            selections=[add_series(a, b) for a, b in zip(self.selections, other.selections)],
        )


def partition_units(contributions: Sequence[Contribution], partitions: int) -> list[list[Contribution]]:
    """Assign whole units to partitions round-robin in first-seen order."""
    slot: dict[str, int] = {}
    parts: list[list[Contribution]] = [[] for _ in range(partitions)]
    for c in contributions:
        index = slot.setdefault(c.unit_id, len(slot) % partitions)
        parts[index].append(c)
    return parts


def prepare(config: TableConfig, snapshot: Snapshot) -> list[Contribution]:
    """Expand, window and join: the contributions a table is computed from."""
    dimensions = set(config.dimensions) | set(config.actor_filter) | set(config.where) | {config.category_dimension}
    for selection in config.summary_rows:
        dimensions |= set(selection.include) | set(selection.exclude)
    attributes = build_attribute_index(snapshot.actors, sorted(dimensions, key=list(Dimension).index))
    events = within_period_range(snapshot.events, config.window)
    contributions = join_contributions(
        events,
        attributes,
        policy=config.join_policy,
        gate_dimension=config.category_dimension,
        actor_filter=config.actor_filter,
    )
    logger.info(
        "%s: %d contributions on %d units",
        config.name,
        len(contributions),
        len({c.unit_id for c in contributions}),
    )
    return contributions


def _where_credit(config: TableConfig):
    if not config.where:
        return None
    return lambda row: all(row.value_of(dim) in wanted for dim, wanted in config.where.items())


def _where_contribution(config: TableConfig):
    if not config.where:
        return None
    return lambda c: all(c.attributes.holds_any(dim, wanted) for dim, wanted in config.where.items())


def summarize_credit_partition(config: TableConfig, contributions: Sequence[Contribution]) -> PartialSummary:
    groups = group_by_unit(contributions, config.earliest_cohort_only)
    actor_rows, value_rows = allocate(groups, config.dimensions)
    if config.should_validate:
        check_conservation(actor_rows, value_rows, settings.conservation_tolerance)

    by_period = config.by_period
    categories = summarize_credit(value_rows, config.category_dimension, by_period, _where_credit(config))
    selections = []
    for selection in config.summary_rows:
        totals: Series = {}
        for row in value_rows:
            if selection.matches_credit(row):
                key = row.period if by_period else None
                totals[key] = totals.get(key, Fraction(0)) + row.fraction
        selections.append(totals)

    return PartialSummary(categories=categories, total=grand_total(actor_rows, by_period), selections=selections)


def summarize_units_partition(config: TableConfig, contributions: Sequence[Contribution]) -> PartialSummary:
    if config.earliest_cohort_only:
        contributions = earliest_cohort(contributions)
    by_period = config.by_period
    where = _where_contribution(config)
    rows = [c for c in contributions if where is None or where(c)]

    return PartialSummary(
        categories=summarize_units(rows, config.category_dimension, by_period),
        total=count_units(contributions, by_period),
        selections=[count_units(contributions, by_period, s.matches_contribution) for s in config.summary_rows],
    )


def _bucketed_table(config: TableConfig, summary: PartialSummary) -> Table:
    totals = summary.categories
    sentinel = missing_label(config.category_dimension)
    excluded = set(config.exclude_values)
    if excluded:
        totals = CategoryTotals(
            by_period=totals.by_period,
            totals={k: v for k, v in totals.totals.items() if k[0] not in excluded},
            first_seen={c: p for c, p in totals.first_seen.items() if c not in excluded},
        )

    buckets = bucketize(totals, sentinel, top_n=config.limit, categories=config.categories)

    if (
        config.should_validate
        and config.measure == Measure.CREDIT
        and (config.other_label or not buckets.other)
        and config.show_missing
        and not config.where
        and not excluded
    ):
        check_completeness(totals, buckets, summary.total, settings.conservation_tolerance)

    rows: list[tuple[str, Series]] = []
    if config.total_label:
        rows.append((config.total_label, summary.total))
    for selection, series in zip(config.summary_rows, summary.selections):
        rows.append((selection.label, series))
    for category in buckets.named:
        rows.append((config.display(category), totals.series(category)))
    if config.other_label:
        rows.append((config.other_label, bucket_series(totals, buckets.other)))
    if config.show_missing and buckets.missing:
        rows.append((config.display(sentinel), totals.series(sentinel)))

    labels = [label for label, _ in rows]
    seen: set[str] = set()
    for label in labels:
        if label in seen:
            raise AmbiguousBucketOverlap(label, ("display row", "display row"))
        seen.add(label)

    summaries = [
        CategorySummary(category=label, period=period, total=total)
        for label, series in rows
        for period, total in series.items()
    ]
    row_order = config.row_order if config.row_order is not None else labels
    periods = period_columns(config.window) if config.by_period else None
    return pivot(config.name, config.index_label, summaries, periods, row_order, config.value_label)


def _collaboration_table(config: TableConfig, contributions: Sequence[Contribution]) -> Table:
    if config.earliest_cohort_only:
        contributions = earliest_cohort(contributions)
    profiles = unit_profiles(contributions, config.category_dimension)
    counts, first_seen = collaboration_counts(profiles, config.focal_value, config.collaboration_modes)

    lead = config.collaboration_modes[0]
    values = sorted(first_seen, key=lambda v: (-counts[lead].get(v, 0), first_seen[v]))
    if config.limit is not None:
        values = values[: config.limit]

    columns = tuple(config.column_labels.get(m.value, m.value) for m in config.collaboration_modes)
    rows = tuple(
        TableRow(config.display(v), tuple(counts[m].get(v, 0) for m in config.collaboration_modes))
        for v in values
    )
    return Table(name=config.name, index_label=config.index_label, columns=columns, rows=rows)


def _pairs_table(config: TableConfig, contributions: Sequence[Contribution]) -> Table:
    if config.earliest_cohort_only:
        contributions = earliest_cohort(contributions)
    profiles = unit_profiles(contributions, config.category_dimension)
    counts = pair_counts(profiles)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    if config.limit is not None:
        ranked = ranked[: config.limit]

    dim = config.category_dimension.value.capitalize()
    second = config.column_labels.get("second", f"{dim} 2")
    rows = tuple(TableRow(config.display(a), (config.display(b), n)) for (a, b), n in ranked)
    return Table(
        name=config.name,
        index_label=config.index_label,
        columns=(second, config.value_label),
        rows=rows,
    )


def run(config: TableConfig, snapshot: Snapshot) -> Table:
    """Compute one table from an immutable snapshot."""
    contributions = prepare(config, snapshot)

    if config.measure == Measure.COLLABORATION:
        return _collaboration_table(config, contributions)
    if config.measure == Measure.PAIRS:
        return _pairs_table(config, contributions)

    summarize = summarize_credit_partition if config.measure == Measure.CREDIT else summarize_units_partition
    partials = [summarize(config, part) for part in partition_units(contributions, config.partitions)]
    summary = partials[0]
    for partial in partials[1:]:
        summary = summary.merge(partial)

    table = _bucketed_table(config, summary)
    logger.info("%s: %d rows x %d columns", config.name, len(table.rows), len(table.columns))
    return table


async def run_from_source(config: TableConfig, source: DataSource) -> Table:
    snapshot = await source.load()
    return run(config, snapshot)
