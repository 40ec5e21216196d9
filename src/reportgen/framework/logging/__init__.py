"""Structured logging for reportgen."""

from reportgen.framework.logging.config import configure_logging, is_configured
from reportgen.framework.logging.context import (
    LogContext,
    add_context_processor,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    push_context,
)
from reportgen.framework.logging.timing import TimingResult, log_step

__all__ = [
    "LogContext",
    "TimingResult",
    "add_context_processor",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_context",
    "get_logger",
    "is_configured",
    "log_step",
    "push_context",
]
