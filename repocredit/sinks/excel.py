"""Excel workbook sink: one sheet per table, written from a fixed start row."""

import logging
import re
from pathlib import Path

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from repocredit.config import settings
from repocredit.pipeline.pivot import Table
from repocredit.sinks.base import ReportSink

logger = logging.getLogger(__name__)

# Excel sheet titles: max 31 chars, none of []:*?/\
_INVALID_TITLE = re.compile(r"[\[\]:*?/\\]")


def sheet_title(section: str) -> str:
    return _INVALID_TITLE.sub("-", section)[:31]


class ExcelSink(ReportSink):
    """Writes tables into an existing or new workbook.

    Rows above ``start_row`` are left as they are so a template's title and
    notes survive; everything from ``start_row`` down is replaced.
    """

    sink_name = "excel"

    def __init__(self, path: str | Path | None = None, start_row: int | None = None):
        self.path = Path(path or settings.output_workbook)
        self.start_row = start_row or settings.output_start_row
        if self.path.exists():
            self.workbook = load_workbook(self.path)
        else:
            self.workbook = Workbook()
            # Drop the default empty sheet; sheets are created per table
            self.workbook.remove(self.workbook.active)
        self._dirty = False
        # section -> sheet title, for sections written through this sink
        self._titles: dict[str, str] = {}

    def _title_for(self, section: str) -> str:
        """Sheet title for a section; a section whose truncated title is taken
        by another section gets a numeric suffix."""
        if section in self._titles:
            return self._titles[section]
        base = sheet_title(section)
        taken = set(self._titles.values())
        title, n = base, 2
        while title in taken:
            suffix = f" ({n})"
            title = base[: 31 - len(suffix)] + suffix
            n += 1
        self._titles[section] = title
        return title

    def write(self, table: Table, section: str | None = None) -> None:
        title = self._title_for(section or table.name)
        if title in self.workbook.sheetnames:
            ws = self.workbook[title]
            if ws.max_row >= self.start_row:
                ws.delete_rows(self.start_row, ws.max_row - self.start_row + 1)
        else:
            ws = self.workbook.create_sheet(title)

        header = [table.index_label, *table.columns]
        for col, value in enumerate(header, start=1):
            cell = ws.cell(row=self.start_row, column=col, value=value)
            cell.font = Font(bold=True)

        for offset, row in enumerate(table.rows, start=1):
            ws.cell(row=self.start_row + offset, column=1, value=row.label)
            for col, value in enumerate(row.values, start=2):
                ws.cell(row=self.start_row + offset, column=col, value=value)

        ws.column_dimensions[get_column_letter(1)].width = 40
        for col in range(2, len(header) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 14

        self._dirty = True
        logger.info("Wrote '%s' (%d rows) to sheet '%s'", table.name, len(table.rows), title)

    def close(self) -> None:
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.workbook.save(self.path)
        self._dirty = False
