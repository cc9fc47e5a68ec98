"""
Unit tests for JSON logging configuration
"""
import json
import logging
import logging.handlers

import pytest

from apnpush.core.logging_config import (
    CustomJsonFormatter,
    DeviceTokenFilter,
    SanitizingFilter,
    setup_logging,
)

from tests.conftest import make_token


def make_record(msg="Test message", args=(), name="test"):
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None
    )


@pytest.fixture
def test_logger_name():
    name = "apnpush.test"
    yield name
    logger = logging.getLogger(name)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


class TestSanitizingFilter:
    """Test log sanitization filter"""

    def test_filter_removes_newlines(self):
        """Filter should replace newline characters"""
        record = make_record("Line 1\nLine 2\r\nLine 3")

        SanitizingFilter().filter(record)

        assert record.msg == "Line 1 Line 2 Line 3"

    def test_filter_sanitizes_args(self):
        """Filter should sanitize string args and keep the rest"""
        record = make_record("Reason: %s (%d)", ("Bad\nToken", 400))

        SanitizingFilter().filter(record)

        assert record.args == ("Bad Token", 400)

    def test_filter_sanitizes_remote_text_fields(self):
        """Reasons and errors returned by APNS are flattened to one line"""
        record = make_record("APNS rejected notification")
        record.reason = "BadDevice\r\nToken"
        record.error = "The specified device\ntoken is invalid"
        record.index = 3

        SanitizingFilter().filter(record)

        assert record.reason == "BadDevice Token"
        assert record.error == "The specified device token is invalid"
        assert record.index == 3


class TestDeviceTokenFilter:
    """Test device token truncation"""

    def test_long_token_truncated(self):
        record = make_record()
        token = make_token(1)
        record.device_token = token

        assert DeviceTokenFilter().filter(record) is True
        assert record.device_token == token[:8] + "..."

    def test_short_token_unchanged(self):
        record = make_record()
        record.device_token = "abcd"

        DeviceTokenFilter().filter(record)

        assert record.device_token == "abcd"

    def test_record_without_token(self):
        record = make_record()

        assert DeviceTokenFilter().filter(record) is True
        assert not hasattr(record, "device_token")


class TestCustomJsonFormatter:
    """Test custom JSON log formatter"""

    def test_formatter_produces_valid_json(self):
        record = make_record(name="apnpush.push.protocol")
        record.reason = "BadDeviceToken"

        parsed = json.loads(CustomJsonFormatter().format(record))

        assert "timestamp" in parsed
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Test message"
        assert parsed["logger"] == "apnpush.push.protocol"
        assert parsed["reason"] == "BadDeviceToken"

    def test_timestamp_is_record_creation_time(self):
        record = make_record()
        record.created = 1700000000.5

        parsed = json.loads(CustomJsonFormatter().format(record))

        assert parsed["timestamp"] == "2023-11-14T22:13:20.500000+00:00"


class TestSetupLogging:
    """Test logging setup function"""

    def test_console_only(self, test_logger_name):
        logger = setup_logging(log_level="debug", logger_name=test_logger_name)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, CustomJsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self, test_logger_name):
        setup_logging(log_level="INFO", logger_name=test_logger_name)
        logger = setup_logging(log_level="INFO", logger_name=test_logger_name)

        assert len(logger.handlers) == 1

    def test_file_handler_writes_json(self, tmp_path, test_logger_name):
        log_file = tmp_path / "logs" / "apnpush.log"
        logger = setup_logging(
            log_level="INFO",
            log_file=str(log_file),
            logger_name=test_logger_name,
        )
        token = make_token(3)

        logger.warning("APNS rejected notification", extra={"device_token": token})
        for handler in logger.handlers:
            handler.flush()

        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers
        )
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "APNS rejected notification"
        assert entry["device_token"] == token[:8] + "..."

    def test_level_from_settings(self, monkeypatch, test_logger_name):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        logger = setup_logging(logger_name=test_logger_name)

        assert logger.level == logging.ERROR
