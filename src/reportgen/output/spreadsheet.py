"""
Spreadsheet backend built on openpyxl.

One right-to-left sheet per table::

    row 1   title (merged across the table width, bold)
    row 2   "תאריך הפקה: dd/mm/yyyy HH:MM:SS"
    row 4   column headers (mapped labels, bold, filled, bordered)
    row 5+  data (ABSENT and None written as empty cells)
"""

from __future__ import annotations

import io
import re
from collections.abc import Callable, Mapping
from datetime import datetime

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from reportgen.core.errors import ErrorCode, RenderBackendError
from reportgen.core.tables import ABSENT, SCHEMA_PREFIX, NamedTable
from reportgen.framework.logging import get_logger
from reportgen.rendering.formatting import DATETIME_FORMAT
from reportgen.rendering.headers import ColumnMappings

logger = get_logger(__name__)

MAX_SHEET_NAME = 31
TITLE_ROW = 1
GENERATED_ROW = 2
HEADER_ROW = 4
FIRST_DATA_ROW = 5
MAX_COLUMN_WIDTH = 60

_INVALID_SHEET_CHARS = re.compile(r"[\[\]\*\?/\\:]")

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
TITLE_FONT = Font(bold=True, size=14)
THIN = Side(style="thin", color="BFBFBF")
CELL_BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)


def sheet_name_for(table_name: str, taken: set[str]) -> str:
    """Excel-safe, unique sheet name (max 31 chars, no ``dbo.``, no ``[]*?/\\:``)."""
    name = table_name
    if name.casefold().startswith(SCHEMA_PREFIX):
        name = name[len(SCHEMA_PREFIX):]
    name = _INVALID_SHEET_CHARS.sub("_", name).strip() or "Sheet"
    name = name[:MAX_SHEET_NAME]
    candidate = name
    counter = 2
    while candidate.casefold() in taken:
        suffix = f"_{counter}"
        candidate = name[: MAX_SHEET_NAME - len(suffix)] + suffix
        counter += 1
    taken.add(candidate.casefold())
    return candidate


class OpenpyxlSpreadsheetBackend:
    """Writes ``NamedTable`` objects to an ``.xlsx`` workbook."""

    def __init__(self, *, right_to_left: bool = True, clock: Callable[[], datetime] = datetime.now):
        self.right_to_left = right_to_left
        self.clock = clock

    def render_spreadsheet(
        self,
        tables: Mapping[str, NamedTable],
        title: str,
        *,
        mappings: ColumnMappings | None = None,
    ) -> bytes:
        if not tables:
            raise RenderBackendError("No tables to export", code=ErrorCode.EXCEL_GENERATION_FAILED)
        mappings = mappings or ColumnMappings()
        try:
            wb = Workbook()
            wb.remove(wb.active)
            taken: set[str] = set()
            generated = self.clock()
            for key, table in tables.items():
                ws = wb.create_sheet(title=sheet_name_for(key, taken))
                self._write_sheet(ws, table, title, generated, mappings)
            buffer = io.BytesIO()
            wb.save(buffer)
        except RenderBackendError:
            raise
        except Exception as e:
            raise RenderBackendError(
                f"Spreadsheet generation failed: {e}", code=ErrorCode.EXCEL_GENERATION_FAILED, cause=e
            ) from e
        payload = buffer.getvalue()
        logger.info("spreadsheet.generated", sheets=len(tables), size_kb=round(len(payload) / 1024, 1))
        return payload

    def _write_sheet(self, ws, table: NamedTable, title: str, generated: datetime, mappings: ColumnMappings) -> None:
        ws.sheet_view.rightToLeft = self.right_to_left
        columns = list(table.columns)
        width = max(1, len(columns))

        ws.cell(row=TITLE_ROW, column=1, value=title).font = TITLE_FONT
        ws.cell(row=TITLE_ROW, column=1).alignment = Alignment(horizontal="center")
        if width > 1:
            ws.merge_cells(start_row=TITLE_ROW, start_column=1, end_row=TITLE_ROW, end_column=width)
        ws.cell(row=GENERATED_ROW, column=1, value=f"תאריך הפקה: {generated.strftime(DATETIME_FORMAT)}")

        widths: dict[int, int] = {}
        for col_idx, column in enumerate(columns, 1):
            label = mappings.label_for(column, table.name) or mappings.resolve(column)
            cell = ws.cell(row=HEADER_ROW, column=col_idx, value=label)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.border = CELL_BORDER
            cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
            widths[col_idx] = len(str(label))

        for row_idx, row in enumerate(table, FIRST_DATA_ROW):
            for col_idx, column in enumerate(columns, 1):
                value = row[column]
                if value is ABSENT:
                    value = None
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = CELL_BORDER
                if isinstance(value, datetime):
                    cell.number_format = "DD/MM/YYYY"
                if value is not None:
                    widths[col_idx] = max(widths[col_idx], len(str(value)))

        for col_idx, length in widths.items():
            ws.column_dimensions[get_column_letter(col_idx)].width = min(length + 2, MAX_COLUMN_WIDTH)
        ws.freeze_panes = ws.cell(row=FIRST_DATA_ROW, column=1)
