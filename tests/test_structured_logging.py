"""
Tests for the structured logging infrastructure.

Verifies that:
- Logging is properly configured
- JSON format is correct
- All log functions work without errors
- Timer and context managers work

Run with: pytest tests/test_structured_logging.py -v
"""

import json
import logging
import sys

import pytest

from core.structured_logging import (
    LOGGER_NAMESPACE,
    setup_logging,
    get_logger,
    JSONFormatter,
    ConsoleFormatter,
    LogContext,
    Timer,
    log_filters,
    log_search,
    log_recommendation,
    log_error,
    timed,
)


def _record(msg="Test message", name="test", level=logging.INFO):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestJSONFormatter:
    """Tests for JSON log formatting."""

    def test_basic_format(self):
        """Test that basic log record is formatted as JSON."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_extra_fields(self):
        """Test that extra fields are included in JSON."""
        record = _record()
        record.session_id = "test-session"
        record.query = "carot"
        record.stage = "fuzzy_name"
        record.product_ids = [2]

        data = json.loads(JSONFormatter().format(record))

        assert data["session_id"] == "test-session"
        assert data["query"] == "carot"
        assert data["stage"] == "fuzzy_name"
        assert data["product_ids"] == [2]

    def test_none_extra_fields_omitted(self):
        """Test that None-valued extras are left out."""
        record = _record()
        record.session_id = None

        data = json.loads(JSONFormatter().format(record))

        assert "session_id" not in data

    def test_unknown_fields_ignored(self):
        """Test that attributes outside EXTRA_FIELDS are not serialized."""
        record = _record()
        record.not_a_field = "x"

        data = json.loads(JSONFormatter().format(record))

        assert "not_a_field" not in data

    def test_exception_info(self):
        """Test that exceptions add error_type and stack_trace."""
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                name="test", level=logging.ERROR, pathname="", lineno=0,
                msg="failed", args=(), exc_info=sys.exc_info(),
            )

        data = json.loads(JSONFormatter().format(record))

        assert data["error_type"] == "ValueError"
        assert "boom" in data["stack_trace"]


class TestConsoleFormatter:
    """Tests for console log formatting."""

    def test_basic_format(self):
        """Test that console output is human-readable."""
        result = ConsoleFormatter().format(_record(name="test.module"))

        assert "INFO" in result
        assert "test.module" in result
        assert "Test message" in result

    def test_context_fields(self):
        """Test that session and event are appended."""
        record = _record()
        record.session_id = "abc"
        record.event = "search_done"

        result = ConsoleFormatter().format(record)

        assert "session_id=abc" in result
        assert "event=search_done" in result
        assert "\033[" not in result


class TestSetupLogging:
    """Tests for handler setup."""

    def test_creates_log_files(self, tmp_path):
        """Test that file handlers write JSON lines."""
        setup_logging(log_dir=str(tmp_path), enable_console=False, force=True)
        try:
            get_logger("setup_test").error("written", extra={"event": "setup_test"})
            for handler in logging.getLogger(LOGGER_NAMESPACE).handlers:
                handler.flush()

            main_log = tmp_path / "farmshop.log"
            error_log = tmp_path / "errors.log"
            assert main_log.exists()
            assert error_log.exists()

            line = main_log.read_text(encoding="utf-8").strip().splitlines()[-1]
            assert json.loads(line)["event"] == "setup_test"
        finally:
            root = logging.getLogger(LOGGER_NAMESPACE)
            for handler in root.handlers:
                handler.close()
            root.handlers = []

    def test_console_only(self, tmp_path):
        """Test that disabling files creates no directory."""
        log_dir = tmp_path / "unused"
        setup_logging(log_dir=str(log_dir), enable_file=False, enable_error_log=False, force=True)
        try:
            assert not log_dir.exists()
            assert len(logging.getLogger(LOGGER_NAMESPACE).handlers) == 1
        finally:
            logging.getLogger(LOGGER_NAMESPACE).handlers = []


class TestLogContext:
    """Tests for logging context manager."""

    def test_context_manager(self):
        """Test that LogContext tracks timing."""
        with LogContext(session_id="test-123") as ctx:
            assert ctx.session_id == "test-123"
            _ = sum(range(1000))

        assert ctx.elapsed_ms() > 0

    def test_auto_generated_session_id(self):
        """Test that session ID is auto-generated if not provided."""
        with LogContext() as ctx:
            assert ctx.session_id is not None
            assert len(ctx.session_id) == 8

    def test_does_not_suppress_exceptions(self, caplog):
        """Test that errors are logged and re-raised."""
        caplog.set_level(logging.ERROR, logger=LOGGER_NAMESPACE)

        with pytest.raises(KeyError):
            with LogContext(session_id="err-1"):
                raise KeyError("missing")

        assert any(getattr(r, "session_id", None) == "err-1" for r in caplog.records)
        assert any(getattr(r, "error_type", None) == "KeyError" for r in caplog.records)

    def test_log_done_includes_latency(self, caplog):
        """Test that completion records carry total latency."""
        caplog.set_level(logging.INFO, logger=LOGGER_NAMESPACE)

        with LogContext(session_id="s1") as ctx:
            ctx.log_done("search", products_found=3)

        record = [r for r in caplog.records if getattr(r, "event", None) == "search_done"][0]
        assert record.products_found == 3
        assert record.total_latency_ms >= 0


class TestTimer:
    """Tests for Timer context manager."""

    def test_timer_measures_time(self):
        """Test that Timer measures elapsed time."""
        with Timer() as t:
            _ = sum(range(1000))

        assert t.elapsed_ms > 0

    def test_elapsed_is_live_then_frozen(self):
        """Test elapsed_ms inside the block and after it."""
        assert Timer().elapsed_ms == 0.0

        with Timer() as t:
            _ = sum(range(1000))
            assert t.elapsed_ms > 0

        final = t.elapsed_ms
        _ = sum(range(1000))
        assert t.elapsed_ms == final


class TestLoggingFunctions:
    """Tests for convenience logging functions."""

    def test_log_filters(self):
        """Test log_filters doesn't raise."""
        log_filters(
            session_id="test",
            filters={"category": ["Vegetables"], "max_price": 200},
            catalog_size=8,
            products_found=2,
            filter_time_ms=0.5,
        )

    def test_log_search(self, caplog):
        """Test log_search records the stage and ids."""
        caplog.set_level(logging.INFO, logger=LOGGER_NAMESPACE)

        log_search(
            session_id="test",
            query="carot",
            stage="fuzzy_name",
            products_found=1,
            search_time_ms=3.2,
            filters={"on_sale": True},
            product_ids=[2],
        )

        record = [r for r in caplog.records if getattr(r, "event", None) == "search_complete"][0]
        assert record.stage == "fuzzy_name"
        assert record.product_ids == [2]

    def test_log_search_truncates_ids(self, caplog):
        """Test that at most ten product ids are logged."""
        caplog.set_level(logging.INFO, logger=LOGGER_NAMESPACE)

        log_search("test", "", "pass_through", 25, 1.0, product_ids=list(range(25)))

        record = [r for r in caplog.records if getattr(r, "event", None) == "search_complete"][0]
        assert record.product_ids == list(range(10))

    def test_log_recommendation(self):
        """Test log_recommendation doesn't raise."""
        log_recommendation(
            session_id="test",
            cart_size=1,
            k=3,
            product_ids=[2, 3, 4],
            sources={"co_purchase": 2, "random": 1},
            recommend_time_ms=0.8,
        )

    def test_log_error(self):
        """Test log_error doesn't raise."""
        try:
            raise ValueError("Test error")
        except Exception as e:
            log_error(
                session_id="test",
                error=e,
                context="Testing error logging",
            )


class TestTimedDecorator:
    """Tests for @timed decorator."""

    def test_timed_decorator(self):
        """Test that @timed decorator works."""
        @timed("test_operation")
        def slow_function():
            return sum(range(1000))

        result = slow_function()
        assert result == sum(range(1000))

    def test_timed_decorator_logs_timing(self, caplog):
        caplog.set_level(logging.DEBUG, logger=LOGGER_NAMESPACE)

        @timed("catalog_load")
        def load():
            return []

        load()

        record = [r for r in caplog.records if getattr(r, "event", None) == "catalog_load_timing"][0]
        assert record.function == "load"
        assert record.elapsed_ms >= 0

    def test_timed_decorator_with_exception(self, caplog):
        """Test that @timed decorator logs and re-raises."""
        caplog.set_level(logging.DEBUG, logger=LOGGER_NAMESPACE)

        @timed("failing_operation")
        def failing_function():
            raise ValueError("Intentional failure")

        with pytest.raises(ValueError):
            failing_function()

        events = [getattr(r, "event", None) for r in caplog.records]
        assert "failing_operation_error" in events
        assert "failing_operation_timing" in events

    def test_timed_preserves_name(self):
        @timed("named")
        def load_something():
            return 1

        assert load_something.__name__ == "load_something"


class TestGetLogger:
    """Tests for logger retrieval."""

    def test_get_logger_returns_logger(self):
        """Test that get_logger returns a logging.Logger."""
        logger = get_logger("test_module")
        assert isinstance(logger, logging.Logger)

    def test_get_logger_namespace(self):
        """Test that logger name is properly namespaced."""
        logger = get_logger("my_module")
        assert logger.name == "farmshop.my_module"

    def test_get_logger_keeps_existing_prefix(self):
        logger = get_logger("farmshop.core.search")
        assert logger.name == "farmshop.core.search"

    def test_get_logger_caches_loggers(self):
        """Test that same logger is returned for same name."""
        logger1 = get_logger("cached_module")
        logger2 = get_logger("cached_module")
        assert logger1 is logger2
