"""Tests for reportgen.output.writer and OutputFormat."""

import pytest

from reportgen.core.errors import ErrorCode, ReportConfigError, ReportGenError, ReportNotFoundError
from reportgen.output.protocol import OutputFormat
from reportgen.output.writer import ReportOutputWriter
from reportgen.pipeline import ReportFailure, ReportOutcome


class TestOutputFormat:
    @pytest.mark.parametrize("value", ["pdf", " PDF ", OutputFormat.PDF])
    def test_pdf(self, value):
        assert OutputFormat.parse(value) is OutputFormat.PDF

    @pytest.mark.parametrize("value", ["xlsx", "Excel", "xls"])
    def test_spreadsheet(self, value):
        assert OutputFormat.parse(value) is OutputFormat.XLSX

    def test_unknown(self):
        with pytest.raises(ReportConfigError, match="docx") as exc_info:
            OutputFormat.parse("docx")
        assert exc_info.value.code == ErrorCode.DB_REPORT_CONFIG_INVALID


class TestReportOutputWriter:
    """Saving payloads."""

    def test_file_name(self, tmp_path, clock):
        writer = ReportOutputWriter(tmp_path, clock=clock)
        assert writer.file_name("דוח/חודשי", OutputFormat.PDF) == "דוח_חודשי_20240315_090507.pdf"

    def test_save_with_marker(self, tmp_path, clock):
        path = ReportOutputWriter(tmp_path / "out", clock=clock).save("charges", OutputFormat.XLSX, b"data")
        assert path.read_bytes() == b"data"
        assert (tmp_path / "out" / "charges_20240315_090507.xlsx.opdialog").exists()

    def test_save_without_marker(self, tmp_path, clock):
        ReportOutputWriter(tmp_path, clock=clock, marker=False).save("charges", OutputFormat.PDF, b"x")
        assert [p.name for p in tmp_path.iterdir()] == ["charges_20240315_090507.pdf"]

    def test_save_failure(self, tmp_path, clock):
        blocker = tmp_path / "file"
        blocker.write_text("not a folder")
        with pytest.raises(ReportGenError) as exc_info:
            ReportOutputWriter(blocker, clock=clock).save("charges", OutputFormat.PDF, b"x")
        assert exc_info.value.code == ErrorCode.REPORT_SAVE_FAILED

    def test_save_outcome(self, tmp_path, clock):
        outcome = ReportOutcome(report_name="charges", output_format=OutputFormat.PDF, payload=b"%PDF")
        path = ReportOutputWriter(tmp_path, clock=clock).save_outcome(outcome)
        assert path.name == "charges_20240315_090507.pdf"

    def test_failed_outcome_is_not_saved(self, tmp_path, clock):
        failure = ReportFailure(code=ErrorCode.DB_REPORT_NOT_FOUND, description="x", cause=ReportNotFoundError("x"))
        outcome = ReportOutcome(report_name="x", output_format=OutputFormat.PDF, success=False, failure=failure)
        with pytest.raises(ReportNotFoundError):
            ReportOutputWriter(tmp_path, clock=clock).save_outcome(outcome)
        assert not list(tmp_path.iterdir())
