"""Output backends (PDF, spreadsheet) and the output writer."""

from reportgen.output.protocol import OutputFormat, PdfBackend, SpreadsheetBackend

__all__ = ["OutputFormat", "PdfBackend", "SpreadsheetBackend"]
