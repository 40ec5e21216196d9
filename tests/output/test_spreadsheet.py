"""Tests for reportgen.output.spreadsheet.OpenpyxlSpreadsheetBackend."""

import io
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from reportgen.core.errors import ErrorCode, RenderBackendError
from reportgen.core.tables import NamedTable, ResultSet
from reportgen.output.protocol import SpreadsheetBackend
from reportgen.output.spreadsheet import OpenpyxlSpreadsheetBackend, sheet_name_for
from reportgen.rendering.headers import ColumnMapping, ColumnMappings


def _table(name, columns, rows):
    table = NamedTable(name)
    table.merge(ResultSet(columns=columns, rows=rows))
    return table


@pytest.fixture
def backend(clock):
    return OpenpyxlSpreadsheetBackend(clock=clock)


def _load(payload):
    return load_workbook(io.BytesIO(payload))


class TestSheetNameFor:
    """Excel sheet naming rules."""

    def test_strips_schema_and_invalid_chars(self):
        assert sheet_name_for("dbo.rpt/a:b", set()) == "rpt_a_b"

    def test_truncates_and_dedups(self):
        taken: set[str] = set()
        long = "x" * 40
        first = sheet_name_for(long, taken)
        second = sheet_name_for(long, taken)
        assert first == "x" * 31
        assert second == "x" * 29 + "_2"

    def test_blank_name(self):
        assert sheet_name_for("   ", set()) == "Sheet"


class TestOpenpyxlSpreadsheetBackend:
    """Workbook layout."""

    def test_satisfies_protocol(self, backend):
        assert isinstance(backend, SpreadsheetBackend)

    def test_one_sheet_per_table(self, backend):
        tables = {
            "rpt_charges": _table("rpt_charges", ["name"], [{"name": "Cohen"}]),
            "dbo.rpt_totals": _table("dbo.rpt_totals", ["total"], []),
        }
        wb = _load(backend.render_spreadsheet(tables, "Charges"))
        assert wb.sheetnames == ["rpt_charges", "rpt_totals"]

    def test_layout(self, backend):
        mappings = ColumnMappings([ColumnMapping("rpt_charges", "amount", "סכום")])
        table = _table(
            "rpt_charges",
            ["name", "amount"],
            [{"name": "Cohen", "amount": Decimal("1234.5")}, {"name": "Levi", "amount": 10}],
        )
        ws = _load(backend.render_spreadsheet({"rpt_charges": table}, "Monthly", mappings=mappings)).active

        assert ws["A1"].value == "Monthly"
        assert ws["A2"].value == "תאריך הפקה: 15/03/2024 09:05:07"
        assert [c.value for c in ws[4]] == ["name", "סכום"]
        assert ws["A5"].value == "Cohen"
        assert float(ws["B5"].value) == 1234.5
        assert ws["A6"].value == "Levi"
        assert ws.sheet_view.rightToLeft
        assert ws.freeze_panes == "A5"
        assert "A1:B1" in {str(r) for r in ws.merged_cells.ranges}

    def test_absent_cells_are_empty(self, backend):
        table = _table("t", ["a"], [{"a": 1}])
        table.merge(ResultSet(columns=["b"], rows=[{"b": 2}]))
        ws = _load(backend.render_spreadsheet({"t": table}, "T")).active
        assert ws["B5"].value is None
        assert ws["A6"].value is None
        assert ws["B6"].value == 2

    def test_left_to_right(self, clock):
        backend = OpenpyxlSpreadsheetBackend(right_to_left=False, clock=clock)
        ws = _load(backend.render_spreadsheet({"t": _table("t", ["a"], [])}, "T")).active
        assert not ws.sheet_view.rightToLeft

    def test_no_tables(self, backend):
        with pytest.raises(RenderBackendError) as exc_info:
            backend.render_spreadsheet({}, "T")
        assert exc_info.value.code == ErrorCode.EXCEL_GENERATION_FAILED
