"""End-to-end runs of the table engine on small snapshots."""

import asyncio

import pytest

from repocredit.errors import AmbiguousBucketOverlap, MissingJoinKeyError
from repocredit.pipeline.engine import partition_units, prepare, run, run_from_source
from repocredit.pipeline.join import JoinPolicy
from repocredit.pipeline.options import Measure, Selection, TableConfig
from repocredit.pipeline.records import Dimension
from repocredit.sources.base import DataSource, Snapshot


def snapshot(events, actors):
    return Snapshot.build(
        [{"actor_id": a, "unit_id": u, "period": p} for a, u, p in events],
        [{"actor_id": a, "country": c} for a, c in actors],
    )


def worked_example(units=4):
    events = []
    for i in range(units):
        events += [("a1", f"U{i}", 2020), ("a2", f"U{i}", 2020)]
    return snapshot(events, [("a1", "US"), ("a2", "US, CA")])


def test_worked_example_totals():
    table = run(TableConfig(name="t", total_label="Total"), worked_example())
    assert table.labels == ["Total", "US", "CA"]
    assert table.value("Total", "Total") == 4
    assert table.value("US", "Total") == 3
    assert table.value("CA", "Total") == 1


def test_idempotent():
    config = TableConfig(name="t", by_period=True, period_range=(2019, 2021))
    data = worked_example()
    assert run(config, data) == run(config, data)


@pytest.mark.parametrize("partitions", [2, 3, 7])
def test_partitioning_does_not_change_result(partitions):
    data = snapshot(
        [("a1", "U1", 2019), ("a2", "U1", 2020), ("a3", "U2", 2020), ("a1", "U3", 2021), ("a4", "U4", 2021)],
        [("a1", "US"), ("a2", "CA, MX"), ("a3", "CA"), ("a4", "")],
    )
    base = dict(name="t", by_period=True, period_range=(2019, 2021), top_n=1, other_label="All Other", total_label="Total")
    expected = run(TableConfig(**base), data)
    assert run(TableConfig(**base, partitions=partitions), data) == expected


def test_partition_keeps_units_whole():
    data = worked_example(units=3)
    contributions = prepare(TableConfig(name="t"), data)
    parts = partition_units(contributions, 2)
    for part in parts:
        for unit in {c.unit_id for c in part}:
            assert len([c for c in part if c.unit_id == unit]) == 2


def test_earliest_cohort():
    """U1 is first seen in 2015 by a1; a2 joins in 2016 and still counts on U2."""
    data = snapshot(
        [("a1", "U1", 2015), ("a2", "U1", 2016), ("a2", "U2", 2016)],
        [("a1", "US"), ("a2", "CA")],
    )
    base = dict(name="t", by_period=True, period_range=(2015, 2016))

    cohort = run(TableConfig(**base, earliest_cohort_only=True), data)
    assert cohort.row("US").values == (1, 0)
    assert cohort.row("CA").values == (0, 1)

    unrestricted = run(TableConfig(**base), data)
    assert unrestricted.row("US").values == (0, 0)
    assert unrestricted.row("CA").values == (0, 2)


def test_missing_country_full_credit():
    data = snapshot([("a1", "U1", 2020), ("a3", "U2", 2020)], [("a1", "US"), ("a3", "  ")])
    table = run(TableConfig(name="t"), data)
    assert table.labels == ["US", "Missing Country"]
    assert table.value("Missing Country", "Total") == 1


def test_top_n_with_other_and_missing():
    countries = ["US", "US", "US", "CA", "CA", "DE", "FR", ""]
    data = snapshot(
        [(f"a{i}", f"U{i}", 2020) for i in range(len(countries))],
        [(f"a{i}", c) for i, c in enumerate(countries)],
    )
    config = TableConfig(name="t", top_n=2, other_label="All Other", total_label="Total")
    table = run(config, data)

    assert table.labels == ["Total", "US", "CA", "All Other", "Missing Country"]
    assert [r.values[0] for r in table.rows] == [8, 3, 2, 2, 1]


def test_hide_missing():
    data = snapshot([("a1", "U1", 2020), ("a3", "U2", 2020)], [("a1", "US"), ("a3", "")])
    table = run(TableConfig(name="t", show_missing=False), data)
    assert table.labels == ["US"]


def test_strict_join_fails_table():
    data = snapshot([("a1", "U1", 2020), ("ghost", "U1", 2020)], [("a1", "US")])
    with pytest.raises(MissingJoinKeyError):
        run(TableConfig(name="t", join_policy=JoinPolicy.STRICT), data)


def test_units_measure():
    data = snapshot(
        [("a1", "U1", 2019), ("a2", "U1", 2020), ("a2", "U2", 2020)],
        [("a1", "US"), ("a2", "US, CA")],
    )
    config = TableConfig(name="t", measure=Measure.UNITS, by_period=True, period_range=(2019, 2020), total_label="Total")
    table = run(config, data)

    assert table.row("Total").values == (1, 1)
    assert table.row("US").values == (1, 1)
    assert table.row("CA").values == (0, 2)


def test_crossed_dimensions_grouped():
    data = Snapshot.build(
        [{"actor_id": "a1", "unit_id": "U1", "period": 2020}, {"actor_id": "a2", "unit_id": "U1", "period": 2020}],
        [
            {"actor_id": "a1", "country": "US", "sector": "academic, business"},
            {"actor_id": "a2", "country": "CA", "sector": "business"},
        ],
    )
    config = TableConfig(
        name="t",
        dimensions=(Dimension.COUNTRY, Dimension.SECTOR),
        group_by=Dimension.SECTOR,
        total_label="Total",
    )
    table = run(config, data)
    # academic 1/4, business 1/4 + 1/2
    assert table.value("business", "Total") == 1
    assert table.value("academic", "Total") == 0
    assert table.value("Total", "Total") == 1


class StaticSource(DataSource):
    source_name = "static"

    async def fetch_events(self) -> list[dict]:
        return [{"actor_id": "a1", "unit_id": "U1", "period": 2020}, {"actor_id": "a2", "unit_id": "U1", "period": 2020}]

    async def fetch_actors(self) -> list[dict]:
        return [{"actor_id": "a1", "country": "US"}, {"actor_id": "a2", "country": "US"}]


def test_run_from_source():
    table = asyncio.run(run_from_source(TableConfig(name="t"), StaticSource()))
    assert table.value("US", "Total") == 1


def test_earliest_cohort_collaboration_and_pairs():
    """a2 joins U1 a year after a1, so under earliest cohort U1 has one actor."""
    data = snapshot([("a1", "U1", 2015), ("a2", "U1", 2016)], [("a1", "US"), ("a2", "CA")])
    collab = dict(name="t", measure=Measure.COLLABORATION, focal_value="US", period_range=(2015, 2016))
    pairs = dict(name="t", measure=Measure.PAIRS, period_range=(2015, 2016))

    assert run(TableConfig(**collab), data).row("CA").values == (1, 0, 0)
    assert run(TableConfig(**collab, earliest_cohort_only=True), data).rows == ()
    assert run(TableConfig(**pairs), data).row("CA").values == ("US", 1)
    assert run(TableConfig(**pairs, earliest_cohort_only=True), data).rows == ()


def test_units_summary_row_reads_uncrossed_dimension():
    data = Snapshot.build(
        [{"actor_id": "a1", "unit_id": "U1", "period": 2020}, {"actor_id": "a2", "unit_id": "U2", "period": 2020}],
        [
            {"actor_id": "a1", "sector": "government", "organization": "NASA"},
            {"actor_id": "a2", "sector": "academic", "organization": "MIT"},
        ],
    )
    config = TableConfig(
        name="t",
        measure=Measure.UNITS,
        dimensions=(Dimension.ORGANIZATION,),
        summary_rows=(Selection(label="Gov", include={Dimension.SECTOR: ("government",)}),),
    )
    table = run(config, data)
    assert table.value("Gov", "Total") == 1
    assert table.value("NASA", "Total") == 1


def test_duplicate_display_label():
    data = snapshot([("a1", "U1", 2020)], [("a1", "US")])
    with pytest.raises(AmbiguousBucketOverlap):
        run(TableConfig(name="t", total_label="US"), data)
