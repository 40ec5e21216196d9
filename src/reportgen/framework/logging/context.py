"""
Logging context management using contextvars.

The current report, job number and timing span are attached to every log
entry by ``add_context_processor``. Context is per thread / per task, so
concurrently generated reports never see each other's values.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from typing import Any

import structlog


def _generate_span_id() -> str:
    """Generate a short span ID (8 hex chars)."""
    return uuid.uuid4().hex[:8]


@dataclass
class LogContext:
    """
    Context attached to all log entries.

    report: Report name being generated
    job_number: Caller job identifier
    output_format: "pdf" or "xlsx"
    span_id / parent_span_id: Tracing for nested ``log_step`` blocks
    step: Current step name
    """

    report: str | None = None
    job_number: int | None = None
    output_format: str | None = None
    span_id: str | None = None
    parent_span_id: str | None = None
    step: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs: Any) -> LogContext:
        """Create new context with merged values."""
        current = asdict(self)
        current.update({k: v for k, v in kwargs.items() if v is not None and k in current})
        return LogContext(**current)


_log_context: ContextVar[LogContext] = ContextVar("reportgen_log_context")  # noqa: B039


def get_context() -> LogContext:
    """Get the current log context."""
    return _log_context.get(LogContext())


def bind_context(**kwargs: Any) -> LogContext:
    """Merge values into the current context."""
    updated = get_context().merge(**kwargs)
    _log_context.set(updated)
    return updated


def clear_context() -> None:
    """Reset to an empty context."""
    _log_context.set(LogContext())


class _ContextToken:
    """Token for restoring context after a scoped operation."""

    def __init__(self, token):
        self._token = token

    def restore(self) -> None:
        _log_context.reset(self._token)


def push_context(**kwargs: Any) -> _ContextToken:
    """
    Push new context values, returning a token to restore later.

    Usage:
        token = push_context(report="monthly_charges")
        try:
            ...
        finally:
            token.restore()
    """
    return _ContextToken(_log_context.set(get_context().merge(**kwargs)))


def add_context_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that adds the current ``LogContext``. Explicit fields win."""
    for key, value in get_context().to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger named ``name``."""
    return structlog.get_logger(name)
