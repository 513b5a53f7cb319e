"""Test period windows and earliest-period resolution."""

from repocredit.pipeline.periods import (
    earliest_cohort,
    group_by_unit,
    keyed_min_periods,
    unit_min_periods,
    within_period_range,
)
from repocredit.pipeline.records import ActorAttributes, Contribution, Dimension
from repocredit.sources.base import ContributionEvent


def contribution(actor_id, unit_id, period, position=0, organization=()):
    attributes = ActorAttributes(actor_id, {Dimension.ORGANIZATION: tuple(organization)} if organization else {})
    return Contribution(unit_id, actor_id, period, position, attributes)


def test_window_is_inclusive():
    events = [ContributionEvent(actor_id="a", unit_id="u", period=p) for p in (2008, 2009, 2023, 2024)]
    assert [e.period for e in within_period_range(events, (2009, 2023))] == [2009, 2023]
    assert len(within_period_range(events, None)) == 4


def test_unit_min_periods():
    rows = [contribution("a1", "u1", 2016), contribution("a2", "u1", 2015), contribution("a1", "u2", 2020)]
    assert unit_min_periods(rows) == {"u1": 2015, "u2": 2020}


def test_earliest_cohort():
    """a1 first on u1 in 2015, a2 in 2016: only a1 is in u1's cohort.
    a2 still counts on u2, where 2016 is the minimum."""
    rows = [
        contribution("a1", "u1", 2015, 0),
        contribution("a2", "u1", 2016, 1),
        contribution("a2", "u2", 2016, 2),
    ]
    cohort = earliest_cohort(rows)
    assert [(c.actor_id, c.unit_id) for c in cohort] == [("a1", "u1"), ("a2", "u2")]


def test_group_by_unit_unrestricted():
    rows = [contribution("a1", "u1", 2015), contribution("a2", "u1", 2016)]
    groups = group_by_unit(rows)
    assert [c.actor_id for c in groups["u1"]] == ["a1", "a2"]
    assert [c.actor_id for c in group_by_unit(rows, earliest_cohort_only=True)["u1"]] == ["a1"]


def test_keyed_min_periods_shared_minimum():
    """Two organizations first appearing in the same period both keep it."""
    rows = [
        contribution("a1", "u1", 2018, organization=("NASA", "NSF")),
        contribution("a2", "u1", 2019, organization=("NASA",)),
    ]
    assert keyed_min_periods(rows, Dimension.ORGANIZATION) == {("u1", "NASA"): 2018, ("u1", "NSF"): 2018}
