"""Named table presets.

Each preset builds the TableConfig(s) for one published table. Presets register
themselves by name so scripts can run one, several, or all of them.
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass

from repocredit.config import settings
from repocredit.errors import CreditEngineError, UnknownTableError
from repocredit.pipeline.collaboration import CollaborationMode
from repocredit.pipeline.engine import run
from repocredit.pipeline.join import JoinPolicy
from repocredit.pipeline.options import Measure, Selection, TableConfig
from repocredit.pipeline.pivot import Table, stack_tables
from repocredit.pipeline.records import Dimension
from repocredit.sinks.base import ReportSink
from repocredit.sources.base import Snapshot

logger = logging.getLogger(__name__)

FEDERAL_AGENCIES = (
    "Agency for International Development",
    "Department of Agriculture",
    "Department of Commerce",
    "Department of the Interior",
    "Department of Defense",
    "Department of Education",
    "Department of Energy",
    "Department of Health and Human Services",
    "Department of Homeland Security",
    "Department of Housing and Urban Development",
    "Department of Justice",
    "Department of Labor",
    "Department of the Treasury",
    "Department of Transportation",
    "Department of Veterans Affairs",
    "Environmental Protection Agency",
    "Federal Election Commission",
    "General Services Administration",
    "National Aeronautics and Space Administration",
    "National Science Foundation",
    "Office of Personnel Management",
    "Small Business Administration",
    "Social Security Administration",
    "Department of State",
)

SECTOR_LABELS = {
    "academic": "Academic",
    "government": "Government",
    "business": "Business",
    "nonprofit": "Nonprofit",
}


@dataclass(frozen=True)
class Report:
    """One output table; several sections are stacked under header rows."""

    name: str
    sections: tuple[tuple[str | None, TableConfig], ...]

    def render(self, snapshot: Snapshot) -> Table:
        if len(self.sections) == 1 and self.sections[0][0] is None:
            return run(self.sections[0][1], snapshot)
        return stack_tables(
            self.name,
            [(header or config.name, run(config, snapshot)) for header, config in self.sections],
        )


def single(config: TableConfig) -> Report:
    return Report(name=config.name, sections=((None, config),))


# Registry of all available presets
_TABLES: dict[str, Callable[..., Report]] = {}


def register(name: str):
    """Decorator to register a preset builder by name."""

    def wrapper(builder: Callable[..., Report]):
        _TABLES[name] = builder
        return builder

    return wrapper


def get_table(name: str) -> Callable[..., Report]:
    if name not in _TABLES:
        available = ", ".join(sorted(_TABLES.keys()))
        raise UnknownTableError(f"Unknown table '{name}'. Available: {available}")
    return _TABLES[name]


def list_tables() -> list[str]:
    return sorted(_TABLES.keys())


def build_report(name: str, **options) -> Report:
    """Build a preset, passing only the options its builder accepts."""
    builder = get_table(name)
    accepted = inspect.signature(builder).parameters
    return builder(**{k: v for k, v in options.items() if v is not None and k in accepted})


@dataclass(frozen=True)
class ReportResult:
    name: str
    table: Table | None = None
    error: Exception | None = None


def write_reports(names: list[str], snapshot: Snapshot, sink: ReportSink, **options) -> list[ReportResult]:
    """Render each named report and hand it to the sink.

    A report that fails is recorded with its error and never reaches the sink;
    the remaining reports still run.
    """
    results = []
    for name in names:
        try:
            report = build_report(name, **options)
            table = report.render(snapshot)
        except (CreditEngineError, UnknownTableError) as exc:
            logger.error("%s failed: %s", name, exc)
            results.append(ReportResult(name=name, error=exc))
            continue
        sink.write(table, report.name)
        results.append(ReportResult(name=name, table=table))
    return results


def _full_window() -> tuple[int, int]:
    return (settings.period_start, settings.period_end)


@register("total-repos")
def total_repos(year: int | None = None) -> Report:
    """Fractional repositories per country for one year; unmatched actors
    stay on the unit under the missing country."""
    year = year or settings.period_end
    return single(
        TableConfig(
            name="Total Repos",
            measure=Measure.CREDIT,
            dimensions=(Dimension.COUNTRY,),
            join_policy=JoinPolicy.OUTER_WITH_GATE,
            period_range=(year, year),
            total_label="Total Repos",
            index_label="Country",
            value_label="Total repositories",
        )
    )


@register("sectors")
def sectors() -> Report:
    us = settings.focal_country
    missing = settings.missing_country
    return single(
        TableConfig(
            name="Repositories by Sector",
            measure=Measure.CREDIT,
            dimensions=(Dimension.COUNTRY, Dimension.SECTOR),
            group_by=Dimension.SECTOR,
            where={Dimension.COUNTRY: (us,)},
            by_period=True,
            period_range=_full_window(),
            summary_rows=(
                Selection(label="Total (Global)", exclude={Dimension.COUNTRY: (us, missing)}),
                Selection(label="Total (US)", include={Dimension.COUNTRY: (us,)}),
                Selection(label=f"Total ({missing})", include={Dimension.COUNTRY: (missing,)}),
            ),
            labels=SECTOR_LABELS,
            row_order=(
                "Total (Global)",
                "Total (US)",
                "Academic",
                "Government",
                "Business",
                "Nonprofit",
                settings.missing_sector,
                f"Total ({missing})",
            ),
            index_label="Sector",
        )
    )


@register("sectors-supplemental")
def sectors_supplemental(top_n: int = 10) -> Report:
    return single(
        TableConfig(
            name="Repositories by Country",
            measure=Measure.CREDIT,
            dimensions=(Dimension.COUNTRY,),
            by_period=True,
            period_range=_full_window(),
            top_n=top_n,
            other_label="All Other",
            total_label="Total",
            index_label="Country",
        )
    )


def _federal(name: str, by_period: bool, other_label: str | None) -> TableConfig:
    return TableConfig(
        name=name,
        measure=Measure.UNITS,
        dimensions=(Dimension.ORGANIZATION,),
        actor_filter={
            Dimension.COUNTRY: (settings.focal_country,),
            Dimension.SECTOR: ("government",),
        },
        period_range=_full_window(),
        by_period=by_period,
        categories=FEDERAL_AGENCIES,
        other_label=other_label,
        show_missing=False,
        total_label="Federal Total",
        index_label="Institution",
        value_label="Number of repositories",
    )


@register("federal-new-repos")
def federal_new_repos() -> Report:
    """New repositories per federal agency, by the year the agency first
    appears on each repository."""
    return single(_federal("New Federal Repositories", by_period=True, other_label=None))


@register("federal-repos")
def federal_repos() -> Report:
    return single(_federal("Federal Repositories", by_period=False, other_label="All Other Federal"))


def _top_organizations(name: str, sector: str, excluded: str, top_n: int) -> TableConfig:
    return TableConfig(
        name=name,
        measure=Measure.UNITS,
        dimensions=(Dimension.ORGANIZATION,),
        actor_filter={Dimension.SECTOR: (sector,)},
        period_range=_full_window(),
        exclude_values=(excluded,),
        top_n=top_n,
        show_missing=False,
        index_label="Institution",
        value_label="Number of repositories",
    )


@register("top-institutions")
def top_institutions(top_n: int = 10) -> Report:
    return Report(
        name="Top Institutions",
        sections=(
            (f"Top {top_n} Businesses (Global)", _top_organizations("Top Businesses", "business", "Misc. Business", top_n)),
            (f"Top {top_n} Universities (Global)", _top_organizations("Top Universities", "academic", "Misc. Academic", top_n)),
        ),
    )


@register("focal-collaborations")
def focal_collaborations(year: int | None = None, top_n: int = 10) -> Report:
    year = year or settings.period_end
    focal = settings.focal_country
    return single(
        TableConfig(
            name="International Collaborations",
            measure=Measure.COLLABORATION,
            dimensions=(Dimension.COUNTRY,),
            period_range=(year, year),
            focal_value=focal,
            top_n=top_n,
            column_labels={
                CollaborationMode.WITH_FOCAL.value: f"Collaborations with {focal}",
                CollaborationMode.AMONG_OTHERS.value: "Collaborations with other countries or economies",
                CollaborationMode.AMONG_OTHERS_EXCLUDING_FOCAL.value: (
                    f"Collaborations with other countries or economies, excluding {focal}"
                ),
            },
            index_label="Country",
        )
    )


@register("codeveloped-pairs")
def codeveloped_pairs(year: int | None = None) -> Report:
    year = year or settings.period_end
    return single(
        TableConfig(
            name="Co-developed Repositories",
            measure=Measure.PAIRS,
            dimensions=(Dimension.COUNTRY,),
            period_range=(year, year),
            column_labels={"second": "Country 2"},
            index_label="Country 1",
            value_label="Co-developed repositories",
        )
    )
