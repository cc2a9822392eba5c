"""Unit tests for JSON logging configuration."""

import json
import logging
import sys

import pytest

from proxytester.logging_config import JsonFormatter, configure_logging


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="proxytester.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Test JsonFormatter output."""

    def test_base_fields(self):
        parsed = json.loads(JsonFormatter().format(_record("hello", request_id="r-1")))
        assert parsed["message"] == "hello"
        assert parsed["level"] == "INFO"
        assert parsed["request_id"] == "r-1"
        assert "timestamp" in parsed

    def test_request_id_defaults_to_none(self):
        parsed = json.loads(JsonFormatter().format(_record("hello")))
        assert parsed["request_id"] is None

    def test_context_fields_copied(self):
        record = _record(
            "Endpoint 4 reachable",
            endpoint_id=4,
            proxy_host="198.51.100.5",
            latency_ms=45,
            throughput_kbps=812,
            duration_ms=1200,
            window_index=0,
        )
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["endpoint_id"] == 4
        assert parsed["proxy_host"] == "198.51.100.5"
        assert parsed["latency_ms"] == 45
        assert parsed["throughput_kbps"] == 812
        assert parsed["duration_ms"] == 1200
        assert parsed["window_index"] == 0

    def test_absent_context_fields_omitted(self):
        parsed = json.loads(JsonFormatter().format(_record("hello")))
        assert "endpoint_id" not in parsed
        assert "error_reason" not in parsed

    def test_error_reason_sanitized(self):
        record = _record("failed", error_reason="auth failed password=hunter2")
        parsed = json.loads(JsonFormatter().format(record))
        assert "hunter2" not in parsed["error_reason"]
        assert "[REDACTED]" in parsed["error_reason"]

    @pytest.mark.parametrize(
        "message",
        [
            "service_key=abc123",
            "Authorization: Bearer-xyz",
            "api_key=sk-live-1",
            "token: t0k3n",
        ],
    )
    def test_message_redacts_secrets(self, message):
        parsed = json.loads(JsonFormatter().format(_record(message)))
        assert "[REDACTED]" in parsed["message"]

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record("crashed")
            record.exc_info = sys.exc_info()
        parsed = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in parsed["exception"]


class TestConfigureLogging:
    """Test configure_logging()."""

    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_handler_installed(self):
        configure_logging("DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_plain_text(self):
        configure_logging("warning", json_format=False)
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("chatty")
        assert logging.getLogger().level == logging.INFO
