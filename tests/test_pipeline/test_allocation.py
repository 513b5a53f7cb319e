"""Test fractional credit allocation and conservation checks."""

from fractions import Fraction

import pytest

from repocredit.errors import ConservationViolation, ZeroEligibleActorsError
from repocredit.pipeline.allocation import allocate, allocate_actor_credit, check_conservation
from repocredit.pipeline.records import ActorAttributes, ActorCredit, Contribution, Dimension


def member(actor_id, unit_id="U1", period=2020, position=0, **values):
    attributes = ActorAttributes(actor_id, {Dimension(k): tuple(v) for k, v in values.items()})
    return Contribution(unit_id, actor_id, period, position, attributes)


def value_totals(value_rows):
    totals = {}
    for row in value_rows:
        totals[row.values] = totals.get(row.values, Fraction(0)) + row.fraction
    return totals


def test_worked_example():
    """a1 (US) and a2 (US, CA) on U1: US = 3/4, CA = 1/4."""
    groups = {"U1": [member("a1", country=["US"]), member("a2", position=1, country=["US", "CA"])]}
    actor_rows, value_rows = allocate(groups, (Dimension.COUNTRY,))

    assert [r.credit for r in actor_rows] == [Fraction(1, 2), Fraction(1, 2)]
    totals = value_totals(value_rows)
    assert totals[("US",)] == Fraction(3, 4)
    assert totals[("CA",)] == Fraction(1, 4)
    assert sum(totals.values()) == 1
    check_conservation(actor_rows, value_rows, 1e-9)


def test_crossed_dimensions_full_product():
    groups = {"U1": [member("a1", country=["US", "CA"], sector=["academic", "business"])]}
    _, value_rows = allocate(groups, (Dimension.COUNTRY, Dimension.SECTOR))

    assert {r.values for r in value_rows} == {
        ("US", "academic"),
        ("US", "business"),
        ("CA", "academic"),
        ("CA", "business"),
    }
    assert all(r.fraction == Fraction(1, 4) for r in value_rows)


def test_missing_value_gets_full_credit():
    _, value_rows = allocate({"U1": [member("a1")]}, (Dimension.COUNTRY,))
    assert len(value_rows) == 1
    assert value_rows[0].values == ("Missing Country",)
    assert value_rows[0].fraction == 1


def test_repeated_actor_counted_once():
    rows = allocate_actor_credit("U1", [member("a1"), member("a1", position=3), member("a2")])
    assert [r.actor_id for r in rows] == ["a1", "a2"]
    assert all(r.credit == Fraction(1, 2) for r in rows)


def test_zero_actors_raises():
    with pytest.raises(ZeroEligibleActorsError, match=r"\[allocate\]"):
        allocate_actor_credit("U9", [])


def test_unit_not_summing_to_one():
    actor_rows = [
        ActorCredit("U1", "a1", 2020, Fraction(1, 2), 0),
        ActorCredit("U1", "a2", 2020, Fraction(1, 3), 1),
    ]
    with pytest.raises(ConservationViolation) as exc_info:
        check_conservation(actor_rows, [], 1e-9)
    assert exc_info.value.stage == "allocate"
    assert "U1" in str(exc_info.value)


def test_split_not_matching_actor_credit():
    actor_rows = [ActorCredit("U1", "a1", 2020, Fraction(1), 0)]
    with pytest.raises(ConservationViolation, match="a1"):
        check_conservation(actor_rows, [], 1e-9)
