"""
Error sinks: where arbitrated errors are persisted.

- ``FileErrorSink``: one pipe-separated line per event in a daily
  ``ErrorLog_YYYYMMDD.log`` file
- ``SqlErrorSink``: insert into the ``report_error_log`` table
- ``FallbackErrorSink``: primary sink, falling back to a secondary one
  (database first, file when the database is unreachable)
"""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, insert
from sqlalchemy.engine import Engine

from reportgen.framework.arbitration import ErrorEvent, ErrorSink
from reportgen.framework.logging import get_logger

logger = get_logger(__name__)


class FileErrorSink:
    """Append events to ``<folder>/ErrorLog_YYYYMMDD.log``."""

    def __init__(self, folder: str | Path):
        self.folder = Path(folder)
        self._lock = threading.Lock()

    def path_for(self, when: datetime) -> Path:
        return self.folder / f"ErrorLog_{when:%Y%m%d}.log"

    @staticmethod
    def format_line(event: ErrorEvent) -> str:
        fields = [
            f"{event.timestamp:%Y-%m-%d %H:%M:%S}",
            event.severity.value,
            event.code.value,
            event.report_name or "",
            str(event.job_number),
            f"{event.module or ''}.{event.method or ''}:{event.line or ''}",
            event.message.replace("\n", " "),
        ]
        if event.exception is not None:
            fields.append(f"{type(event.exception).__name__}: {event.exception}".replace("\n", " "))
        return " | ".join(fields)

    def write(self, event: ErrorEvent) -> None:
        path = self.path_for(event.timestamp)
        line = self.format_line(event)
        with self._lock:
            self.folder.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")


metadata = MetaData()

error_log_table = Table(
    "report_error_log",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("logged_at", DateTime, nullable=False),
    Column("severity", String(16), nullable=False),
    Column("code", String(64), nullable=False),
    Column("message", Text, nullable=False),
    Column("report_name", String(200)),
    Column("job_number", Integer, nullable=False, default=0),
    Column("module_name", String(200)),
    Column("method_name", String(200)),
    Column("line_number", Integer),
    Column("user_name", String(100)),
    Column("details", Text),
)


class SqlErrorSink:
    """Insert events into ``report_error_log``."""

    def __init__(self, engine: Engine, *, create_table: bool = False):
        self.engine = engine
        if create_table:
            metadata.create_all(engine, tables=[error_log_table])

    def write(self, event: ErrorEvent) -> None:
        details = event.details
        if event.exception is not None:
            exc_text = f"{type(event.exception).__name__}: {event.exception}"
            details = f"{details}\n{exc_text}" if details else exc_text
        with self.engine.begin() as conn:
            conn.execute(
                insert(error_log_table).values(
                    logged_at=event.timestamp,
                    severity=event.severity.value,
                    code=event.code.value,
                    message=event.message,
                    report_name=event.report_name,
                    job_number=event.job_number,
                    module_name=event.module,
                    method_name=event.method,
                    line_number=event.line,
                    user_name=event.user,
                    details=details,
                )
            )


class FallbackErrorSink:
    """Write to ``primary``; on failure log it and write to ``fallback``."""

    def __init__(self, primary: ErrorSink, fallback: ErrorSink):
        self.primary = primary
        self.fallback = fallback

    def write(self, event: ErrorEvent) -> None:
        try:
            self.primary.write(event)
        except Exception as e:
            logger.warning("sink.primary_failed", sink=type(self.primary).__name__, error=str(e))
            self.fallback.write(event)
