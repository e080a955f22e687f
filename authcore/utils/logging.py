# authcore/utils/logging.py
"""
Logging configuration.

Provides:
- Text or JSON output (LOG_FORMAT)
- Correlation id and authenticated user id on every record
- Quieter third-party loggers

Usage:
    from authcore.utils import setup_logging

    setup_logging(level=settings.log_level, log_format=settings.log_format)

Log Levels:
    DEBUG   - Outbox codes in development, SQL echo when DEBUG=true
    INFO    - Business events (sign-up, sign-in, code issued, sign-out)
    WARNING - Rejected credentials and codes (reason only), retries
    ERROR   - Storage, hashing, signing or delivery failures

Secrets (passwords, codes, tokens, hashes) are never passed to a logger
outside the development outbox.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from authcore.utils.context import get_correlation_id, get_request_context

DEFAULT_TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(user_id)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "no-correlation-id"
ANONYMOUS = "-"

NOISY_LOGGERS = [
    "urllib3",
    "httpx",
    "httpcore",
    "asyncio",
    "passlib",
    "sqlalchemy.engine.Engine",
]

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# LogRecord attributes that are not "extra" fields
_STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "correlation_id", "user_id", "message", "taskName",
})


class RequestContextFilter(logging.Filter):
    """Adds ``correlation_id`` and ``user_id`` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        record.user_id = get_request_context().get("user_id") or ANONYMOUS
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:

    {"timestamp": "...", "level": "INFO", "logger": "authcore.services.auth.service",
     "correlation_id": "...", "user_id": "...", "message": "...", "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "user_id": getattr(record, "user_id", ANONYMOUS),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS:
                continue
            try:
                json.dumps(value)
                extra[key] = value
            except (TypeError, ValueError):
                extra[key] = str(value)
        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry)


def setup_logging(
        level: str = "INFO",
        log_format: str = "text",
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure the root logger.

    Called once by ``create_app()``; calling it again replaces the handler
    rather than adding a second one.

    Args:
        level: Log level name (case-insensitive)
        log_format: 'text' or 'json'
        suppress_noisy_loggers: Raise third-party loggers to WARNING

    Raises:
        ValueError: If level is not a valid log level name
    """
    log_level = _get_log_level(level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level}, format={log_format}",
        extra={"config": {"level": level, "format": log_format}},
    )


def _get_log_level(level_str: str) -> int:
    key = level_str.upper().strip()
    if key not in _LEVELS:
        raise ValueError(
            f"Invalid log level: '{level_str}'. Valid levels are: {', '.join(_LEVELS)}"
        )
    return _LEVELS[key]


def get_logger(name: str) -> logging.Logger:
    """Return a standard logger; context fields come from the handler filter."""
    return logging.getLogger(name)
