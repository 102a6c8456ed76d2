"""
Unit tests for logging configuration.

Tests structured JSON logging, text output, handler setup and the
logging helpers.
"""

import json
import logging
import logging.handlers
import sys
from unittest.mock import MagicMock, patch

import pytest

from procedure_app.core.config import Config
from procedure_app.core.logging_config import (
    StructuredFormatter,
    TextFormatter,
    get_logger,
    log_performance,
    log_port_call,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test.component",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestStructuredFormatter:
    """Test cases for StructuredFormatter."""

    def test_format_basic_log_record(self):
        formatter = StructuredFormatter("run-123")

        log_data = json.loads(formatter.format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["component"] == "test.component"
        assert log_data["run_id"] == "run-123"
        assert log_data["message"] == "Test message"
        assert log_data["timestamp"].endswith("Z")

    def test_format_with_metadata(self):
        formatter = StructuredFormatter("run-123")
        record = make_record(level=logging.ERROR)
        record.metadata = {"port_name": "save", "duration": 0.5}

        log_data = json.loads(formatter.format(record))

        assert log_data["metadata"]["port_name"] == "save"
        assert log_data["metadata"]["duration"] == 0.5

    def test_format_with_exception(self):
        formatter = StructuredFormatter("run-123")

        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())

        log_data = json.loads(formatter.format(record))

        assert "ValueError: Test exception" in log_data["exception"]

    def test_format_with_context_fields(self):
        formatter = StructuredFormatter("run-123")
        record = make_record()
        record.session_id = "20260101-abc"
        record.procedure_id = "proc-1"
        record.status = "completed"

        log_data = json.loads(formatter.format(record))

        assert log_data["session_id"] == "20260101-abc"
        assert log_data["procedure_id"] == "proc-1"
        assert log_data["status"] == "completed"


class TestTextFormatter:
    def test_format_includes_run_and_metadata(self):
        formatter = TextFormatter("abcdef123456")
        record = make_record()
        record.metadata = {"key": "key-1"}

        line = formatter.format(record)

        assert "Test message" in line
        assert "(run: abcdef12)" in line
        assert "key=key-1" in line


class TestLoggingSetup:
    """Test cases for logging setup functions."""

    def test_setup_logging_development_mode(self, temp_config):
        temp_config.log_level = "DEBUG"

        root = setup_logging(temp_config, "run-123")

        assert root.level == logging.DEBUG
        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers
        )
        assert temp_config.get_log_file_path().exists()
        assert (temp_config.logs_dir / "debug").is_dir()

    def test_setup_logging_ci_mode_has_no_file_handlers(self, temp_config):
        temp_config.ci_mode = True
        temp_config.log_format = "json"

        root = setup_logging(temp_config, "run-123")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_json_output_carries_run_id(self, temp_config, capsys):
        temp_config.ci_mode = True
        temp_config.log_format = "json"
        setup_logging(temp_config, "run-456")

        get_logger("test.component").info("hello")

        lines = [l for l in capsys.readouterr().out.splitlines() if l.strip()]
        entry = json.loads(lines[-1])
        assert entry["run_id"] == "run-456"
        assert entry["message"] == "hello"

    def test_get_logger(self):
        logger = get_logger("test.component")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "test.component"

    def test_get_logger_with_context(self):
        adapter = get_logger("test.component", session_id="s-1")

        assert isinstance(adapter, logging.LoggerAdapter)
        msg, kwargs = adapter.process("hi", {})
        assert kwargs["extra"]["session_id"] == "s-1"


class TestLoggingHelpers:
    def test_log_port_call_success_is_debug(self):
        logger = MagicMock()

        log_port_call(logger, "save", "key-1", 0.01, True)

        level, message = logger.log.call_args[0][:2]
        assert level == logging.DEBUG
        assert "save [key-1] success" in message
        assert logger.log.call_args[1]["extra"]["metadata"]["port_name"] == "save"

    def test_log_port_call_failure_is_warning(self):
        logger = MagicMock()

        log_port_call(logger, "save", "key-1", 0.01, False, error="boom")

        level = logger.log.call_args[0][0]
        assert level == logging.WARNING
        assert logger.log.call_args[1]["extra"]["metadata"]["error"] == "boom"

    @pytest.mark.asyncio
    async def test_log_performance_decorator(self):
        @log_performance("test_operation")
        async def add(x, y):
            return x + y

        with patch("procedure_app.core.logging_config.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            assert await add(2, 3) == 5

            call_args = mock_logger.info.call_args
            assert "test_operation completed" in call_args[0][0]
            assert "duration" in call_args[1]["extra"]["metadata"]

    @pytest.mark.asyncio
    async def test_log_performance_with_exception(self):
        @log_performance("test_operation")
        async def failing():
            raise ValueError("Test error")

        with patch("procedure_app.core.logging_config.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            with pytest.raises(ValueError):
                await failing()

            assert "test_operation failed" in mock_logger.error.call_args[0][0]
