"""
Timing helpers for step logging.

``log_step`` logs ``<event>.start`` at DEBUG and ``<event>.end`` with
``duration_ms`` when the block finishes, or ``<event>.error`` with the
exception details when it raises. Span ids propagate to nested steps
through the log context.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from reportgen.framework.logging.context import get_context, get_logger, push_context


def _generate_span_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class TimingResult:
    """Result of a timed block."""

    step: str
    span_id: str = field(default_factory=_generate_span_id)
    parent_span_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"
    error_info: dict[str, Any] | None = None

    def stop(self) -> TimingResult:
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        return self

    @property
    def duration_ms(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000

    def add_metric(self, key: str, value: Any) -> TimingResult:
        self.metrics[key] = value
        return self

    def set_error(self, e: BaseException) -> TimingResult:
        self.status = "error"
        self.error_info = {"error_type": type(e).__name__, "error_message": str(e)}
        return self

    def to_log_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"duration_ms": round(self.duration_ms, 2), "span_id": self.span_id}
        if self.parent_span_id:
            result["parent_span_id"] = self.parent_span_id
        result.update(self.metrics)
        if self.error_info:
            result["status"] = self.status
            result.update(self.error_info)
        return result


@contextmanager
def log_step(event: str, log_start: bool = True, level: str = "info", **extra_metrics: Any) -> Iterator[TimingResult]:
    """
    Log a step with timing.

    Usage:
        with log_step("aggregator.source", source="rpt_sales") as timer:
            result = source.execute(...)
            timer.add_metric("rows", len(result))
    """
    log = get_logger("reportgen.timing")
    parent_span = get_context().span_id
    timer = TimingResult(step=event, parent_span_id=parent_span, metrics=dict(extra_metrics))
    token = push_context(span_id=timer.span_id, parent_span_id=parent_span, step=event)
    try:
        if log_start:
            log.debug(f"{event}.start", span_id=timer.span_id, **extra_metrics)
        yield timer
    except Exception as e:
        timer.stop()
        timer.set_error(e)
        log.error(f"{event}.error", **timer.to_log_dict())
        raise
    finally:
        timer.stop()
        token.restore()

    getattr(log, level)(f"{event}.end", **timer.to_log_dict())
