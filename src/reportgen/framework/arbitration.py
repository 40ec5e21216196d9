"""
Error arbitration: severity thresholds, de-duplication and persistence.

Every component reports problems through an injected ``ErrorReporter``
instead of a global logger. The shared ``ErrorArbiter`` decides whether a
report is persisted to its sinks and whether the caller may continue;
``ReportScope`` binds one report execution (name + job number) to the
arbiter and collects that execution's issues for the ``ReportOutcome``.

Manifesto:
    - **Explicit injection:** No ambient error manager; reporters are passed in
    - **Ordered severities:** INFORMATION < WARNING < ERROR < CRITICAL
    - **Two thresholds:** ``log_threshold`` gates persistence,
      ``break_threshold`` decides ``can_continue``
    - **Atomic bookkeeping:** Counters, last-error slots and the dedup set
      share one lock

Architecture:
    ::

        component ──report()──▶ ReportScope ──▶ ErrorArbiter ──▶ structlog
                                   │                 │
                               issues[]              └──(≥ log_threshold,
                                                         not duplicate)──▶ ErrorSink*

        dedup key: (report, job, code, module, method)

Examples:
    >>> arbiter = ErrorArbiter(break_threshold=ErrorSeverity.ERROR)
    >>> arbiter.warning(ErrorCode.PARAMETERS_MISSING, "no declared params")
    True
    >>> arbiter.error(ErrorCode.DB_QUERY_FAILED, "boom")
    False

Tags:
    error-handling, arbitration, thresholds, deduplication, reportgen

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

import inspect
import os
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from reportgen.core.errors import ErrorCode
from reportgen.framework.logging import get_logger

logger = get_logger(__name__)


class ErrorSeverity(str, Enum):
    """Error severity levels, ordered."""

    INFORMATION = "INFORMATION"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def _order(self) -> list[ErrorSeverity]:
        return [
            ErrorSeverity.INFORMATION,
            ErrorSeverity.WARNING,
            ErrorSeverity.ERROR,
            ErrorSeverity.CRITICAL,
        ]

    def __lt__(self, other: ErrorSeverity) -> bool:
        return self._order().index(self) < self._order().index(other)

    def __le__(self, other: ErrorSeverity) -> bool:
        return self._order().index(self) <= self._order().index(other)

    def __ge__(self, other: ErrorSeverity) -> bool:
        return self._order().index(self) >= self._order().index(other)

    def __gt__(self, other: ErrorSeverity) -> bool:
        return self._order().index(self) > self._order().index(other)

    @property
    def log_method(self) -> str:
        return _LOG_METHODS[self]


_LOG_METHODS = {
    ErrorSeverity.INFORMATION: "info",
    ErrorSeverity.WARNING: "warning",
    ErrorSeverity.ERROR: "error",
    ErrorSeverity.CRITICAL: "critical",
}


@dataclass
class ErrorEvent:
    """One reported problem, with the location that reported it."""

    code: ErrorCode
    severity: ErrorSeverity
    message: str
    exception: BaseException | None = None
    report_name: str | None = None
    job_number: int = 0
    module: str | None = None
    method: str | None = None
    line: int | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    user: str = "SYSTEM"
    details: str | None = None

    @property
    def dedup_key(self) -> tuple[Any, ...]:
        return (self.report_name, self.job_number, self.code, self.module, self.method)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.code.value,
            "severity": self.severity.value,
            "message": self.message,
            "job_number": self.job_number,
            "timestamp": self.timestamp.isoformat(),
            "user": self.user,
        }
        for key in ("report_name", "module", "method", "line", "details"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.exception is not None:
            result["exception"] = f"{type(self.exception).__name__}: {self.exception}"
        return result


@runtime_checkable
class ErrorSink(Protocol):
    """Persists error events (file, database ...)."""

    def write(self, event: ErrorEvent) -> None: ...


@runtime_checkable
class ErrorReporter(Protocol):
    """What components call to report a problem."""

    def report(
        self,
        code: ErrorCode,
        severity: ErrorSeverity,
        message: str,
        exception: BaseException | None = None,
        report_name: str | None = None,
        job_number: int = 0,
    ) -> bool: ...

    def info(self, code: ErrorCode, message: str, **kwargs: Any) -> bool: ...

    def warning(self, code: ErrorCode, message: str, **kwargs: Any) -> bool: ...

    def error(self, code: ErrorCode, message: str, **kwargs: Any) -> bool: ...

    def critical(self, code: ErrorCode, message: str, **kwargs: Any) -> bool: ...


class _SeverityHelpers:
    """``info``/``warning``/``error``/``critical`` on top of ``report``."""

    def report(self, code, severity, message, exception=None, report_name=None, job_number=0, **kwargs):
        raise NotImplementedError

    def info(self, code: ErrorCode, message: str, **kwargs: Any) -> bool:
        return self.report(code, ErrorSeverity.INFORMATION, message, **kwargs)

    def warning(self, code: ErrorCode, message: str, **kwargs: Any) -> bool:
        return self.report(code, ErrorSeverity.WARNING, message, **kwargs)

    def error(self, code: ErrorCode, message: str, **kwargs: Any) -> bool:
        return self.report(code, ErrorSeverity.ERROR, message, **kwargs)

    def critical(self, code: ErrorCode, message: str, **kwargs: Any) -> bool:
        return self.report(code, ErrorSeverity.CRITICAL, message, **kwargs)


def _caller_location() -> tuple[str | None, str | None, int | None]:
    """First frame outside this module: (module, function, line)."""
    frame = inspect.currentframe()
    try:
        while frame is not None and os.path.abspath(frame.f_code.co_filename) == _THIS_FILE:
            frame = frame.f_back
        if frame is None:
            return None, None, None
        return frame.f_globals.get("__name__"), frame.f_code.co_name, frame.f_lineno
    finally:
        del frame


_THIS_FILE = os.path.abspath(__file__)


class ErrorArbiter(_SeverityHelpers):
    """
    Shared arbitration collaborator.

    Thread-safe; one instance is normally shared by every pipeline.
    """

    def __init__(
        self,
        sinks: Iterable[ErrorSink] = (),
        *,
        log_threshold: ErrorSeverity = ErrorSeverity.WARNING,
        break_threshold: ErrorSeverity = ErrorSeverity.CRITICAL,
    ):
        self._sinks = list(sinks)
        self.log_threshold = log_threshold
        self.break_threshold = break_threshold
        self._lock = threading.Lock()
        self._error_count = 0
        self._last_error: ErrorEvent | None = None
        self._last_by_severity: dict[ErrorSeverity, ErrorEvent] = {}
        self._seen: set[tuple[Any, ...]] = set()

    @classmethod
    def from_settings(cls, settings: Any, sinks: Iterable[ErrorSink] = ()) -> ErrorArbiter:
        return cls(
            sinks,
            log_threshold=settings.error_log_threshold,
            break_threshold=settings.error_break_threshold,
        )

    def add_sink(self, sink: ErrorSink) -> None:
        self._sinks.append(sink)

    def can_continue(self, severity: ErrorSeverity) -> bool:
        return severity < self.break_threshold

    def report(
        self,
        code: ErrorCode,
        severity: ErrorSeverity,
        message: str,
        exception: BaseException | None = None,
        report_name: str | None = None,
        job_number: int = 0,
        *,
        details: str | None = None,
    ) -> bool:
        """
        Record a problem and decide whether the caller may continue.

        Returns:
            ``severity < break_threshold``
        """
        module, method, line = _caller_location()
        event = ErrorEvent(
            code=code,
            severity=severity,
            message=message,
            exception=exception,
            report_name=report_name,
            job_number=job_number,
            module=module,
            method=method,
            line=line,
            details=details,
        )
        return self.record(event)

    def record(self, event: ErrorEvent) -> bool:
        """Arbitrate an already-built event."""
        getattr(logger, event.severity.log_method)(
            "arbiter.reported",
            code=event.code.value,
            error_message=event.message,
            report=event.report_name,
            job_number=event.job_number,
            location=f"{event.module}.{event.method}:{event.line}",
            exc_info=event.exception if event.exception is not None else None,
        )

        persist = False
        with self._lock:
            self._error_count += 1
            self._last_error = event
            self._last_by_severity[event.severity] = event
            if event.severity >= self.log_threshold and event.dedup_key not in self._seen:
                self._seen.add(event.dedup_key)
                persist = True

        if persist:
            self._persist(event)
        return self.can_continue(event.severity)

    def _persist(self, event: ErrorEvent) -> None:
        for sink in self._sinks:
            try:
                sink.write(event)
            except Exception:
                logger.exception("arbiter.sink_failed", sink=type(sink).__name__, code=event.code.value)

    @property
    def error_count(self) -> int:
        with self._lock:
            return self._error_count

    @property
    def last_error(self) -> ErrorEvent | None:
        with self._lock:
            return self._last_error

    def last_error_of(self, severity: ErrorSeverity) -> ErrorEvent | None:
        with self._lock:
            return self._last_by_severity.get(severity)

    def reset(self) -> None:
        """Clear counters, last-error slots and the dedup set."""
        with self._lock:
            self._error_count = 0
            self._last_error = None
            self._last_by_severity.clear()
            self._seen.clear()

    def scope(self, report_name: str | None, job_number: int = 0) -> ReportScope:
        return ReportScope(self, report_name, job_number)


class ReportScope(_SeverityHelpers):
    """
    Reporter bound to one report execution.

    Fills in the report name and job number and keeps the execution's
    WARNING-or-worse events as ``issues``.
    """

    def __init__(self, arbiter: ErrorArbiter, report_name: str | None, job_number: int = 0):
        self.arbiter = arbiter
        self.report_name = report_name
        self.job_number = job_number
        self._issues: list[ErrorEvent] = []
        self._lock = threading.Lock()

    def report(
        self,
        code: ErrorCode,
        severity: ErrorSeverity,
        message: str,
        exception: BaseException | None = None,
        report_name: str | None = None,
        job_number: int = 0,
        *,
        details: str | None = None,
    ) -> bool:
        module, method, line = _caller_location()
        event = ErrorEvent(
            code=code,
            severity=severity,
            message=message,
            exception=exception,
            report_name=report_name or self.report_name,
            job_number=job_number or self.job_number,
            module=module,
            method=method,
            line=line,
            details=details,
        )
        if severity >= ErrorSeverity.WARNING:
            with self._lock:
                self._issues.append(event)
        return self.arbiter.record(event)

    @property
    def issues(self) -> list[ErrorEvent]:
        with self._lock:
            return list(self._issues)
