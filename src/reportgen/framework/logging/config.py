"""
Logging configuration.

Single entry point for configuring structured logging. Reads
``REPORTGEN_LOG_LEVEL`` (DEBUG | INFO | WARNING | ERROR, default INFO) and
``REPORTGEN_LOG_FORMAT`` (json | console, default console) when arguments are
not given.

Usage:
    from reportgen.framework.logging import configure_logging
    configure_logging(level="DEBUG", format="json")
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

from reportgen.framework.logging.context import add_context_processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | str | None = None,
    format: Literal["json", "console"] | str | None = None,
    force: bool = False,
) -> None:
    """
    Configure structlog and stdlib logging.

    Subsequent calls are no-ops unless ``force=True``.
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("REPORTGEN_LOG_LEVEL", "INFO")).upper()
    log_format = (format or os.environ.get("REPORTGEN_LOG_FORMAT", "console")).lower()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_context_processor,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )
    logging.getLogger("reportgen").setLevel(getattr(logging, log_level, logging.INFO))

    _configured = True


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured
