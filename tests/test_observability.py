"""Tests for observability module."""

import json
import logging
import time

import pytest

from cfkv.observability import (
    LogContext,
    LogEntry,
    LogLevel,
    OperationContext,
    StructuredFormatter,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    key_var,
    namespace_id_var,
    operation_var,
    register_metric_callback,
    unregister_metric_callback,
)


@pytest.fixture
def received():
    """Collect metrics emitted during a test."""
    events: list[tuple] = []

    def callback(name: str, value: float, labels: dict) -> None:
        events.append((name, value, labels))

    register_metric_callback(callback)
    yield events
    unregister_metric_callback(callback)


def make_record(msg: str = "Test message") -> logging.LogRecord:
    return logging.LogRecord(
        name="cfkv.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestLogContext:
    """Tests for LogContext."""

    def test_current_returns_empty_when_no_context(self) -> None:
        """Current returns empty context when no vars set."""
        context = LogContext.current()
        assert context.operation is None
        assert context.namespace_id is None
        assert context.key is None
        assert context.to_dict() == {}

    def test_to_dict_excludes_none_values(self) -> None:
        """to_dict excludes None values."""
        context = LogContext(operation="get", key="user:1")
        assert context.to_dict() == {"operation": "get", "key": "user:1"}

    def test_to_dict_keeps_empty_key(self) -> None:
        """The empty string is a valid key and is kept."""
        assert LogContext(key="").to_dict() == {"key": ""}

    def test_to_dict_includes_extra(self) -> None:
        """to_dict includes extra fields."""
        context = LogContext(operation="put", extra={"ttl": 60})
        assert context.to_dict() == {"operation": "put", "ttl": 60}


class TestLogEntry:
    """Tests for LogEntry."""

    def test_to_json_basic(self) -> None:
        """to_json produces valid JSON without optional fields."""
        entry = LogEntry(
            level=LogLevel.INFO,
            message="Test message",
            timestamp="2024-01-01T00:00:00Z",
            logger="test",
        )
        assert json.loads(entry.to_json()) == {
            "level": "INFO",
            "message": "Test message",
            "timestamp": "2024-01-01T00:00:00Z",
            "logger": "test",
        }

    def test_to_json_with_all_fields(self) -> None:
        """to_json includes context, error and duration."""
        entry = LogEntry(
            level=LogLevel.WARNING,
            message="KV transport failure",
            timestamp="2024-01-01T00:00:00Z",
            logger="cfkv.client",
            context={"method": "GET"},
            error={"type": "TransportError", "message": "timed out"},
            duration_ms=15000.0,
        )
        result = json.loads(entry.to_json())

        assert result["context"] == {"method": "GET"}
        assert result["error"]["type"] == "TransportError"
        assert result["duration_ms"] == 15000.0


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_formats_as_json(self) -> None:
        """Formats log record as JSON."""
        parsed = json.loads(StructuredFormatter().format(make_record()))

        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Test message"
        assert parsed["logger"] == "cfkv.test"
        assert "timestamp" in parsed

    def test_includes_operation_context(self) -> None:
        """Operation context variables and record context are merged."""
        record = make_record()
        record.context = {"status": 200}

        with OperationContext("delete", namespace_id="ns-1", key="k"):
            parsed = json.loads(StructuredFormatter().format(record))

        assert parsed["context"] == {
            "operation": "delete",
            "namespace_id": "ns-1",
            "key": "k",
            "status": 200,
        }

    def test_includes_error(self) -> None:
        """Exception info is rendered as type and message."""
        try:
            raise ValueError("bad value")
        except ValueError as e:
            record = make_record()
            record.exc_info = (type(e), e, e.__traceback__)

        parsed = json.loads(StructuredFormatter().format(record))
        assert parsed["error"] == {"type": "ValueError", "message": "bad value"}


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_debug_with_duration(self, caplog: pytest.LogCaptureFixture) -> None:
        """Debug entries carry context and duration."""
        logger = StructuredLogger("cfkv.test.debug", LogLevel.DEBUG)

        with caplog.at_level(logging.DEBUG, logger="cfkv.test.debug"):
            logger.debug("KV request completed", context={"status": 200}, duration_ms=3.5)

        record = caplog.records[0]
        assert record.levelname == "DEBUG"
        assert record.context == {"status": 200}
        assert record.duration_ms == 3.5

    def test_warning_with_error(self, caplog: pytest.LogCaptureFixture) -> None:
        """Warnings attach exception info."""
        logger = StructuredLogger("cfkv.test.warning")

        with caplog.at_level(logging.WARNING, logger="cfkv.test.warning"):
            logger.warning("failed", error=RuntimeError("boom"))

        assert caplog.records[0].levelname == "WARNING"
        assert caplog.records[0].exc_info[0] is RuntimeError

    def test_error_logs_at_error_level(self, caplog: pytest.LogCaptureFixture) -> None:
        """Error method logs at ERROR level."""
        logger = StructuredLogger("cfkv.test.error")

        with caplog.at_level(logging.ERROR, logger="cfkv.test.error"):
            logger.error("Error message")

        assert len(caplog.records) == 1
        assert caplog.records[0].levelname == "ERROR"


class TestOperationContext:
    """Tests for OperationContext."""

    def test_sets_and_resets_context_vars(self) -> None:
        """Variables are set inside the block and restored after."""
        with OperationContext("put", namespace_id="ns-1", key="k"):
            assert operation_var.get() == "put"
            assert namespace_id_var.get() == "ns-1"
            assert key_var.get() == "k"

        assert operation_var.get() is None
        assert namespace_id_var.get() is None
        assert key_var.get() is None

    def test_nested(self) -> None:
        """Inner contexts restore the outer one on exit."""
        with OperationContext("list_keys", namespace_id="ns-1"):
            with OperationContext("get", namespace_id="ns-1", key="a"):
                assert operation_var.get() == "get"
            assert operation_var.get() == "list_keys"
            assert key_var.get() is None


class TestTimer:
    """Tests for Timer."""

    def test_measures_duration(self) -> None:
        """Measures elapsed time."""
        with Timer() as timer:
            time.sleep(0.05)

        assert timer.duration_ms >= 40  # Allow some variance
        assert timer.duration_ms < 1000


class TestMetrics:
    """Tests for metric functions."""

    def test_register_and_emit_metric(self, received) -> None:
        """Register callback and emit metric."""
        emit_metric("test.metric", 42.5, {"key": "value"})

        name, value, labels = received[-1]
        assert name == "test.metric"
        assert value == 42.5
        assert labels == {"key": "value"}

    def test_labels_from_operation_context(self, received) -> None:
        """Operation and namespace are added as labels."""
        with OperationContext("get", namespace_id="ns-1", key="k"):
            emit_counter("kv.calls")

        _, _, labels = received[-1]
        assert labels == {"operation": "get", "namespace_id": "ns-1"}

    def test_emit_counter(self, received) -> None:
        """Emit counter increments by 1."""
        emit_counter("test.counter")

        name, value, _ = received[-1]
        assert name == "test.counter"
        assert value == 1.0

    def test_emit_timer(self, received) -> None:
        """Emit timer with duration."""
        emit_timer("test.timer", 123.45)

        name, value, _ = received[-1]
        assert name == "test.timer"
        assert value == 123.45

    def test_failing_callback_is_ignored(self, received) -> None:
        """A raising callback does not stop other callbacks."""
        def broken(name: str, value: float, labels: dict) -> None:
            raise RuntimeError("metrics backend down")

        register_metric_callback(broken)
        try:
            emit_counter("test.counter")
        finally:
            unregister_metric_callback(broken)

        assert received[-1][0] == "test.counter"


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_package_logger(self):
        logger = logging.getLogger("cfkv")
        level, handlers = logger.level, list(logger.handlers)
        yield
        logger.setLevel(level)
        logger.handlers[:] = handlers

    def test_configures_package_logger(self) -> None:
        """Sets level and a JSON handler on the cfkv logger."""
        configure_logging(level=LogLevel.DEBUG, format="json")

        root = logging.getLogger("cfkv")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_text_format(self) -> None:
        """Text format uses a plain formatter."""
        configure_logging(level=LogLevel.INFO, format="text")

        handler = logging.getLogger("cfkv").handlers[0]
        assert not isinstance(handler.formatter, StructuredFormatter)

    def test_get_logger_returns_structured_logger(self) -> None:
        """get_logger returns StructuredLogger."""
        logger = get_logger("cfkv.module")
        assert isinstance(logger, StructuredLogger)
        assert logger.logger.name == "cfkv.module"
