"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from storecache.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    current_context,
)


def make_record(message: str = "Store a created", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="storecache.services.stores",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    """Test context propagation."""

    def test_context_set_and_restored(self) -> None:
        """Values apply inside the block only."""
        assert current_context() == {}

        with LogContext(operation="delete_store", correlation_id="req-1"):
            assert current_context() == {"correlation_id": "req-1", "operation": "delete_store"}

        assert current_context() == {}

    def test_nested_context(self) -> None:
        """Inner blocks override and then restore outer values."""
        with LogContext(operation="outer"):
            with LogContext(operation="inner"):
                assert current_context()["operation"] == "inner"
            assert current_context()["operation"] == "outer"

    def test_unknown_field_rejected(self) -> None:
        """Only known context fields are accepted."""
        with pytest.raises(ValueError, match="tenant"):
            LogContext(tenant="x")


class TestJsonFormatter:
    """Test JSON output."""

    def test_includes_context_and_extra(self) -> None:
        """Context values and extra fields are emitted."""
        with LogContext(operation="update_store"):
            formatter = JsonFormatter(service="stores-api", env="test")
            output = formatter.format(make_record(key="storecache.stores.all"))

        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["logger"] == "storecache.services.stores"
        assert data["msg"] == "Store a created"
        assert data["service"] == "stores-api"
        assert data["env"] == "test"
        assert data["operation"] == "update_store"
        assert data["key"] == "storecache.stores.all"

    def test_non_json_extra_is_stringified(self) -> None:
        """Extra values without a JSON form are written as strings."""
        data = json.loads(JsonFormatter().format(make_record(nodes={"a", "b"})))

        assert isinstance(data["nodes"], str)

    def test_exception_details(self) -> None:
        """Exceptions carry their type and formatted traceback."""
        try:
            raise RuntimeError("flush failed")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))
        assert data["exc_type"] == "RuntimeError"
        assert "RuntimeError: flush failed" in data["exc"]


class TestConsoleFormatter:
    """Test human-readable output."""

    def test_plain_output(self) -> None:
        """Without colors the line has level, logger, message and context."""
        with LogContext(operation="insert_store"):
            output = ConsoleFormatter(use_colors=False).format(make_record())

        assert "INFO" in output
        assert "storecache.services.stores" in output
        assert "Store a created" in output
        assert "op=insert_store" in output
        assert "\033[" not in output


class TestConfigureLogging:
    """Test root logger setup."""

    def test_installs_single_handler(self) -> None:
        """Repeated configuration replaces the handler."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(json_format=True, level="debug")
            configure_logging(json_format=False, level="WARNING", use_colors=False)

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, ConsoleFormatter)
            assert root.level == logging.WARNING
            assert logging.getLogger("redis").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
