"""Tests for reportgen.framework.logging."""

import logging

import pytest

from reportgen.framework.logging import (
    add_context_processor,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    is_configured,
    log_step,
    push_context,
)


class TestLogContext:
    """Context variable handling."""

    def test_bind_and_clear(self):
        bind_context(report="charges", job_number=3)
        assert get_context().report == "charges"
        assert get_context().job_number == 3
        clear_context()
        assert get_context().report is None

    def test_push_restores_previous(self):
        bind_context(report="outer")
        token = push_context(report="inner")
        assert get_context().report == "inner"
        token.restore()
        assert get_context().report == "outer"


class TestLogStep:
    """Timed steps."""

    def test_records_duration_and_metrics(self):
        with log_step("test.step", source="a") as timer:
            timer.add_metric("rows", 3)
        assert timer.ended_at is not None
        assert timer.duration_ms >= 0
        assert timer.to_log_dict()["rows"] == 3
        assert timer.to_log_dict()["source"] == "a"

    def test_nested_steps_link_spans(self):
        with log_step("outer") as outer:
            with log_step("inner") as inner:
                assert get_context().span_id == inner.span_id
            assert get_context().span_id == outer.span_id
        assert inner.parent_span_id == outer.span_id
        assert get_context().span_id is None

    def test_error_marks_timer_and_reraises(self):
        with pytest.raises(ValueError):
            with log_step("failing") as timer:
                raise ValueError("boom")
        assert timer.status == "error"
        assert timer.error_info == {"error_type": "ValueError", "error_message": "boom"}


class TestContextProcessor:
    """structlog processor that injects the log context."""

    def test_adds_context_fields(self):
        bind_context(report="charges", job_number=4)
        event = add_context_processor(None, "info", {"event": "report.test"})
        assert event["report"] == "charges"
        assert event["job_number"] == 4

    def test_explicit_fields_win(self):
        bind_context(report="charges")
        event = add_context_processor(None, "info", {"event": "x", "report": "other"})
        assert event["report"] == "other"


class TestConfigureLogging:
    """structlog configuration."""

    def test_configures_once_unless_forced(self):
        configure_logging(level="WARNING", force=True)
        assert is_configured()
        assert logging.getLogger("reportgen").level == logging.WARNING
        configure_logging(level="DEBUG")
        assert logging.getLogger("reportgen").level == logging.WARNING
        configure_logging(level="INFO", force=True)
        assert logging.getLogger("reportgen").level == logging.INFO
