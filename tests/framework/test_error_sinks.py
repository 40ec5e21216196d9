"""Tests for reportgen.framework.sinks."""

from datetime import datetime

import pytest
from sqlalchemy import create_engine, select

from reportgen.core.errors import ErrorCode
from reportgen.framework.arbitration import ErrorEvent, ErrorSeverity
from reportgen.framework.sinks import FallbackErrorSink, FileErrorSink, SqlErrorSink, error_log_table


@pytest.fixture
def event():
    return ErrorEvent(
        code=ErrorCode.DB_QUERY_FAILED,
        severity=ErrorSeverity.ERROR,
        message="query\nfailed",
        exception=RuntimeError("timeout"),
        report_name="charges",
        job_number=3,
        module="reportgen.pipeline",
        method="_run",
        line=10,
        timestamp=datetime(2024, 3, 15, 9, 5, 7),
    )


class TestFileErrorSink:
    """Daily pipe-separated log file."""

    def test_writes_daily_file(self, tmp_path, event):
        sink = FileErrorSink(tmp_path / "logs")
        sink.write(event)
        sink.write(event)
        path = tmp_path / "logs" / "ErrorLog_20240315.log"
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        fields = lines[0].split(" | ")
        assert fields[:5] == ["2024-03-15 09:05:07", "ERROR", "DB_Query_Failed", "charges", "3"]
        assert fields[6] == "query failed"
        assert fields[7] == "RuntimeError: timeout"


class TestSqlErrorSink:
    """SQLAlchemy Core insert."""

    def test_inserts_row(self, event):
        engine = create_engine("sqlite://")
        SqlErrorSink(engine, create_table=True).write(event)
        with engine.connect() as conn:
            row = conn.execute(select(error_log_table)).mappings().one()
        assert row["code"] == "DB_Query_Failed"
        assert row["report_name"] == "charges"
        assert row["user_name"] == "SYSTEM"
        assert "RuntimeError: timeout" in row["details"]


class TestFallbackErrorSink:
    """Primary then fallback."""

    def test_falls_back_when_primary_fails(self, tmp_path, event):
        class Broken:
            def write(self, e):
                raise ConnectionError("db down")

        FallbackErrorSink(Broken(), FileErrorSink(tmp_path)).write(event)
        assert (tmp_path / "ErrorLog_20240315.log").exists()

    def test_primary_only_when_it_works(self, tmp_path, event, sink):
        FallbackErrorSink(sink, FileErrorSink(tmp_path)).write(event)
        assert len(sink.events) == 1
        assert not list(tmp_path.iterdir())
