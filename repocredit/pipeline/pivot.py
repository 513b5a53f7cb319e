"""Long-to-wide reshaping and display rounding.

Rounding to whole display units (half to even) happens only here; everything
upstream stays exact.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from fractions import Fraction

import pandas as pd

from repocredit.pipeline.records import CategorySummary

Period = int | None


def display_round(value: Fraction | int | None) -> int | None:
    """Round to the nearest integer, ties to even."""
    if value is None:
        return None
    return round(Fraction(value))


@dataclass(frozen=True)
class TableRow:
    label: str
    values: tuple[int | str | None, ...]


@dataclass(frozen=True)
class Table:
    """A finished table: fixed row order, one or more value columns."""

    name: str
    index_label: str
    columns: tuple[str, ...]
    rows: tuple[TableRow, ...]

    @property
    def labels(self) -> list[str]:
        return [r.label for r in self.rows]

    def row(self, label: str) -> TableRow:
        for r in self.rows:
            if r.label == label:
                return r
        raise KeyError(f"Table '{self.name}' has no row '{label}'")

    def value(self, label: str, column: str) -> int | str | None:
        return self.row(label).values[self.columns.index(column)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [[r.label, *r.values] for r in self.rows],
            columns=[self.index_label, *self.columns],
        )


def period_columns(period_range: tuple[int, int]) -> list[int]:
    start, end = period_range
    return list(range(start, end + 1))


def pivot_series(
    name: str,
    index_label: str,
    rows: Sequence[tuple[str, Mapping[Period, Fraction]]],
    periods: Sequence[int] | None,
    value_label: str = "Total",
) -> Table:
    """Build a table from labelled series.

    With ``periods`` each row gets one column per period, zero-filled. Without,
    each row gets a single column holding the sum over all periods.
    """
    table_rows: list[TableRow] = []
    for label, series in rows:
        if periods is None:
            total = sum(series.values(), Fraction(0))
            table_rows.append(TableRow(label, (display_round(total),)))
        else:
            table_rows.append(
                TableRow(label, tuple(display_round(series.get(p, Fraction(0))) for p in periods))
            )

    columns = (value_label,) if periods is None else tuple(str(p) for p in periods)
    return Table(name=name, index_label=index_label, columns=columns, rows=tuple(table_rows))


def pivot(
    name: str,
    index_label: str,
    summaries: Iterable[CategorySummary],
    periods: Sequence[int] | None,
    row_order: Sequence[str] | None = None,
    value_label: str = "Total",
) -> Table:
    """Reshape a long (category, period, total) relation into a wide table."""
    series: dict[str, dict[Period, Fraction]] = {}
    for s in summaries:
        bucket = series.setdefault(s.category, {})
        bucket[s.period] = bucket.get(s.period, Fraction(0)) + s.total

    labels = list(row_order) if row_order is not None else list(series)
    return pivot_series(name, index_label, [(label, series.get(label, {})) for label in labels], periods, value_label)


def stack_tables(name: str, sections: Sequence[tuple[str, Table]]) -> Table:
    """Concatenate tables sharing columns, each preceded by a header row."""
    if not sections:
        raise ValueError("stack_tables needs at least one section")
    first = sections[0][1]
    rows: list[TableRow] = []
    for header, table in sections:
        if table.columns != first.columns:
            raise ValueError(f"Section '{header}' columns differ from '{sections[0][0]}'")
        rows.append(TableRow(header, tuple(None for _ in table.columns)))
        rows.extend(table.rows)
    return Table(name=name, index_label=first.index_label, columns=first.columns, rows=tuple(rows))
