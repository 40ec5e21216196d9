"""Output backend protocols."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from reportgen.core.errors import ReportConfigError
from reportgen.core.tables import NamedTable

if TYPE_CHECKING:
    from reportgen.rendering.headers import ColumnMappings


class OutputFormat(str, Enum):
    """Report payload formats."""

    PDF = "pdf"
    XLSX = "xlsx"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | OutputFormat) -> OutputFormat:
        """
        Parse a format name (case-insensitive; "excel" and "xls" mean xlsx).

        Raises:
            ReportConfigError: unknown format.
        """
        if isinstance(value, OutputFormat):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("excel", "xls"):
            return cls.XLSX
        try:
            return cls(normalized)
        except ValueError as e:
            raise ReportConfigError(f"Unknown output format '{value}'", cause=e).with_context(
                output_format=str(value)
            ) from e


@runtime_checkable
class PdfBackend(Protocol):
    """Converts rendered HTML to PDF bytes."""

    def render_pdf(self, html: str, title: str) -> bytes: ...


@runtime_checkable
class SpreadsheetBackend(Protocol):
    """Writes named tables to a workbook."""

    def render_spreadsheet(
        self,
        tables: Mapping[str, NamedTable],
        title: str,
        *,
        mappings: ColumnMappings | None = None,
    ) -> bytes: ...
