"""
Structured JSON Logging Configuration

Provides logging configuration for applications embedding apnpush:
- JSON formatted output for machine parsing
- Device token truncation in structured fields
- Optional file rotation
- Configurable log levels via environment
"""
import logging
import logging.handlers
import os
import re
from datetime import datetime, timezone
from typing import Optional

from pythonjsonlogger import jsonlogger

from apnpush.core.config import get_settings

# Visible prefix of device tokens in log fields
DEVICE_TOKEN_VISIBLE_CHARS = 8

# Structured fields that carry text from APNS responses or exceptions
REMOTE_TEXT_FIELDS = ('error', 'reason', 'apns_id')

_LINE_BREAKS = re.compile(r'\r\n|\r|\n')


def _single_line(value: str) -> str:
    return _LINE_BREAKS.sub(' ', value)


class SanitizingFilter(logging.Filter):
    """
    Keep every log entry on one line.

    Error bodies and reasons returned by APNS end up in the message args and
    in the ``error``/``reason`` extra fields; line breaks there could forge
    extra entries in plain-text logs.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _single_line(record.msg)

        if isinstance(record.args, tuple):
            record.args = tuple(
                _single_line(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        for field in REMOTE_TEXT_FIELDS:
            value = getattr(record, field, None)
            if isinstance(value, str):
                setattr(record, field, _single_line(value))

        return True


class DeviceTokenFilter(logging.Filter):
    """
    Shorten ``device_token`` extra fields.

    Device tokens identify a user's device; only a prefix is kept.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        token = getattr(record, 'device_token', None)
        if isinstance(token, str) and len(token) > DEVICE_TOKEN_VISIBLE_CHARS:
            record.device_token = token[:DEVICE_TOKEN_VISIBLE_CHARS] + "..."
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for dispatch logs.

    The timestamp is the time the record was created, so entries written
    by concurrent workers sort in the order they happened.

    Output format:
    {
        "timestamp": "2026-01-12T10:30:00.000000+00:00",
        "level": "WARNING",
        "message": "APNS rejected notification",
        "logger": "apnpush.push.protocol",
        "module": "protocol",
        "index": 3,
        "reason": "BadDeviceToken",
        ...extra fields...
    }
    """

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record.setdefault('message', record.getMessage())


def _configure_handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SanitizingFilter())
    handler.addFilter(DeviceTokenFilter())


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    logger_name: str = "apnpush",
) -> logging.Logger:
    """
    Configure JSON logging for the apnpush loggers.

    Args:
        log_level: Override log level (default from settings.LOG_LEVEL)
        log_file: Override log file path (default from settings.LOG_FILE)
        logger_name: Logger to configure ("" for the root logger)

    Returns:
        The configured logger
    """
    settings = get_settings()
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)
    log_file = log_file or settings.LOG_FILE

    json_formatter = CustomJsonFormatter(
        '%(timestamp)s %(level)s %(name)s %(message)s'
    )

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    _configure_handler(console_handler, level, json_formatter)
    logger.addHandler(console_handler)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)

        # Max 100MB per file, keep 7 rotated files
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=100 * 1024 * 1024,
            backupCount=7,
            encoding='utf-8'
        )
        _configure_handler(file_handler, level, json_formatter)
        logger.addHandler(file_handler)

    # Suppress noisy transport loggers
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('hpack').setLevel(logging.WARNING)

    return logger
