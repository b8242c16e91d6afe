# tests/test_error_handler.py
"""Tests for ErrorHandler: records, logging, callbacks, thresholds."""

import logging

import pytest

from contextual_ai.error_handler import ErrorHandler
from contextual_ai.models import ErrorCategory, ErrorSeverity, RecoveryStrategy


@pytest.fixture
def handler(clock):
    return ErrorHandler(error_threshold=3, time_window=60, clock=clock)


class TestHandleError:
    def test_creates_record(self, handler, clock):
        record = handler.handle_error(
            ErrorCategory.INFERENCE,
            ErrorSeverity.MEDIUM,
            "model crashed",
            "inference_engine",
            error=RuntimeError("boom"),
            context={"attempt": 1},
        )

        assert record.id.startswith("err_")
        assert record.timestamp == clock()
        assert record.error_type == "RuntimeError"
        assert record.context == {"attempt": 1}
        assert record.recovery_strategy == RecoveryStrategy.FALLBACK
        assert record.resolved is False

    @pytest.mark.parametrize(
        "category,severity,expected",
        [
            (ErrorCategory.NETWORK, ErrorSeverity.LOW, RecoveryStrategy.RETRY),
            (ErrorCategory.CONTEXT, ErrorSeverity.MEDIUM, RecoveryStrategy.GRACEFUL_DEGRADATION),
            (ErrorCategory.PRIVACY, ErrorSeverity.HIGH, RecoveryStrategy.DISABLE_FEATURE),
            (ErrorCategory.UNKNOWN, ErrorSeverity.LOW, RecoveryStrategy.RETRY),
            (ErrorCategory.CONTEXT, ErrorSeverity.CRITICAL, RecoveryStrategy.RESTART_COMPONENT),
        ],
    )
    def test_recovery_strategy(self, category, severity, expected):
        assert ErrorHandler.recovery_strategy(category, severity) == expected

    @pytest.mark.parametrize(
        "severity,level",
        [
            (ErrorSeverity.LOW, logging.INFO),
            (ErrorSeverity.MEDIUM, logging.WARNING),
            (ErrorSeverity.HIGH, logging.ERROR),
        ],
    )
    def test_log_level_follows_severity(self, handler, caplog, severity, level):
        with caplog.at_level(logging.DEBUG, logger="contextual_ai.error_handler"):
            handler.handle_error(ErrorCategory.CONTEXT, severity, "something failed", "source")

        assert caplog.records[-1].levelno == level
        assert "[CONTEXT] source: something failed" in caplog.records[-1].getMessage()

    def test_callbacks_run_and_failures_are_contained(self, handler):
        seen = []

        def broken(record):
            raise ValueError("callback bug")

        handler.on_error(ErrorCategory.NETWORK, broken)
        handler.on_error(ErrorCategory.NETWORK, seen.append)
        record = handler.handle_error(ErrorCategory.NETWORK, ErrorSeverity.LOW, "flaky", "fetcher")

        assert seen == [record]

    def test_max_records(self, clock):
        handler = ErrorHandler(max_records=2, clock=clock)
        for i in range(3):
            handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, f"e{i}", "c")

        assert handler.get_statistics().total == 2


class TestThresholds:
    def test_component_disabled_after_threshold(self, handler):
        for _ in range(3):
            handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "x", "aggregator")

        assert handler.should_disable_component("aggregator") is True
        assert handler.should_disable_component("formatter") is False

    def test_window_resets_count(self, handler, clock):
        for _ in range(2):
            handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "x", "aggregator")
        clock.advance(61)
        handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "x", "aggregator")

        assert handler.should_disable_component("aggregator") is False

    def test_reset_error_count(self, handler):
        for _ in range(3):
            handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "x", "aggregator")
        handler.reset_error_count("aggregator")

        assert handler.should_disable_component("aggregator") is False


class TestQueries:
    def test_statistics(self, handler):
        handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "a", "source")
        handler.handle_error(ErrorCategory.INFERENCE, ErrorSeverity.HIGH, "b", "engine")
        record = handler.handle_error(ErrorCategory.INFERENCE, ErrorSeverity.HIGH, "c", "engine")
        handler.mark_resolved(record.id)

        stats = handler.get_statistics()

        assert stats.total == 3
        assert stats.by_category == {"context": 1, "inference": 2}
        assert stats.by_severity == {"low": 1, "high": 2}
        assert stats.by_component == {"source": 1, "engine": 2}
        assert stats.resolved == 1
        assert stats.recent[-1].id == record.id

    def test_recent_errors_newest_first(self, handler, clock):
        first = handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "a", "source")
        clock.advance(5)
        second = handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "b", "source")

        assert [r.id for r in handler.get_recent_errors("source")] == [second.id, first.id]
        assert [r.id for r in handler.get_recent_errors("source", time_window=2)] == [second.id]

    def test_cleanup_resolved(self, handler, clock):
        record = handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "a", "source")
        handler.mark_resolved(record.id)
        handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "b", "source")
        clock.advance(7200)

        assert handler.cleanup_resolved() == 1
        assert handler.get_statistics().total == 1
        assert handler.mark_resolved("err_missing") is False

    def test_clear(self, handler):
        handler.handle_error(ErrorCategory.CONTEXT, ErrorSeverity.LOW, "a", "source")
        handler.clear()

        assert handler.get_statistics().total == 0
