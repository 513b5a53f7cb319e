"""Test the named table presets against one shared snapshot.

a4 holds two countries and two agencies; ghost has no attribute record.
"""

import pytest

from repocredit import tables
from repocredit.errors import MissingJoinKeyError, UnknownTableError
from repocredit.pipeline.join import JoinPolicy
from repocredit.pipeline.options import TableConfig
from repocredit.sinks.base import ReportSink
from repocredit.sources.base import Snapshot
from repocredit.tables import FEDERAL_AGENCIES, build_report, get_table, list_tables, single, write_reports

ACTORS = [
    {"actor_id": "a1", "country": "United States", "sector": "academic", "organization": "MIT"},
    {"actor_id": "a2", "country": "Canada", "sector": "business", "organization": "Shopify"},
    {"actor_id": "a3", "country": "United States", "sector": "government", "organization": "Department of Energy"},
    {
        "actor_id": "a4",
        "country": "United States, Canada",
        "sector": "government",
        "organization": "Department of Defense, Department of Energy",
    },
    {"actor_id": "a5", "country": "", "sector": "", "organization": ""},
    {"actor_id": "a6", "country": "Germany", "sector": "business", "organization": "Misc. Business"},
]

EVENTS = [
    ("a1", "U1", 2023),
    ("a2", "U1", 2023),
    ("a3", "U2", 2022),
    ("a4", "U2", 2023),
    ("a5", "U3", 2023),
    ("ghost", "U3", 2023),
    ("a6", "U4", 2023),
    ("ghost", "U4", 2023),
    ("a2", "U5", 2021),
]

SNAPSHOT = Snapshot.build([{"actor_id": a, "unit_id": u, "period": p} for a, u, p in EVENTS], ACTORS)


def render(name, **options):
    return build_report(name, **options).render(SNAPSHOT)


def test_registry():
    assert list_tables() == [
        "codeveloped-pairs",
        "federal-new-repos",
        "federal-repos",
        "focal-collaborations",
        "sectors",
        "sectors-supplemental",
        "top-institutions",
        "total-repos",
    ]
    with pytest.raises(UnknownTableError):
        get_table("no-such-table")


def test_unused_options_are_ignored():
    assert build_report("federal-repos", year=2020, top_n=5).name == "Federal Repositories"


def test_total_repos():
    """Unit U3 has no resolvable country and is gated out; ghost on U4
    keeps half of U4 under the missing country."""
    table = render("total-repos", year=2023)
    column = "Total repositories"

    assert table.labels == ["Total Repos", "United States", "Canada", "Germany", "Missing Country"]
    assert table.value("Total Repos", column) == 3
    assert table.value("United States", column) == 1
    assert table.value("Canada", column) == 1


def test_sectors():
    table = render("sectors")

    assert table.labels == [
        "Total (Global)",
        "Total (US)",
        "Academic",
        "Government",
        "Business",
        "Nonprofit",
        "Unclassified",
        "Total (Missing Country)",
    ]
    assert table.columns[0] == "2009"
    assert table.columns[-1] == "2023"
    assert table.value("Total (Global)", "2023") == 2
    assert table.value("Total (Global)", "2021") == 1
    assert table.value("Total (US)", "2023") == 1
    assert table.value("Total (Missing Country)", "2023") == 1
    assert all(v == 0 for v in table.row("Business").values)


def test_sectors_supplemental():
    table = render("sectors-supplemental", top_n=1)

    assert table.labels == ["Total", "Canada", "All Other", "Missing Country"]
    assert table.value("Total", "2021") == 1
    assert table.value("Canada", "2021") == 1
    assert table.value("All Other", "2023") == 2
    assert table.value("Missing Country", "2023") == 1


def test_federal_repos():
    table = render("federal-repos")
    column = "Number of repositories"

    assert len(table.rows) == len(FEDERAL_AGENCIES) + 2
    assert table.labels[0] == "Federal Total"
    assert table.labels[-1] == "All Other Federal"
    assert table.value("Federal Total", column) == 1
    assert table.value("Department of Energy", column) == 1
    assert table.value("Department of Defense", column) == 1
    assert table.value("Department of Labor", column) == 0


def test_federal_new_repos_by_first_year():
    table = render("federal-new-repos")

    assert len(table.columns) == 15
    assert table.value("Federal Total", "2022") == 1
    assert table.value("Department of Energy", "2022") == 1
    assert table.value("Department of Energy", "2023") == 0
    assert table.value("Department of Defense", "2023") == 1


def test_top_institutions():
    table = render("top-institutions", top_n=2)

    assert table.labels == [
        "Top 2 Businesses (Global)",
        "Shopify",
        "Top 2 Universities (Global)",
        "MIT",
    ]
    assert table.value("Shopify", "Number of repositories") == 2
    assert table.value("MIT", "Number of repositories") == 1


def test_focal_collaborations():
    table = render("focal-collaborations", year=2023)
    assert table.labels == ["Canada"]
    assert table.row("Canada").values == (1, 0, 0)
    assert table.columns[0] == "Collaborations with United States"


def test_codeveloped_pairs():
    table = render("codeveloped-pairs", year=2023)
    assert table.columns == ("Country 2", "Co-developed repositories")
    assert table.labels == ["Canada"]
    assert table.row("Canada").values == ("United States", 2)


class ListSink(ReportSink):
    sink_name = "list"

    def __init__(self):
        self.written = []

    def write(self, table, section=None):
        self.written.append((section, table))


def test_write_reports_skips_failed_tables(monkeypatch):
    def broken():
        return single(TableConfig(name="Broken", join_policy=JoinPolicy.STRICT))

    monkeypatch.setitem(tables._TABLES, "broken", broken)
    sink = ListSink()
    results = write_reports(["no-such-table", "broken", "codeveloped-pairs"], SNAPSHOT, sink, year=2023)

    assert [r.name for r in results] == ["no-such-table", "broken", "codeveloped-pairs"]
    assert isinstance(results[0].error, UnknownTableError)
    assert isinstance(results[1].error, MissingJoinKeyError)
    assert results[2].error is None
    assert [section for section, _ in sink.written] == ["Co-developed Repositories"]
