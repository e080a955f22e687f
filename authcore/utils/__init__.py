# authcore/utils/__init__.py
"""
Cross-cutting utilities:
- logging: root logger setup with request context on every record
- context: correlation id and per-request context (user id)
"""

from authcore.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    get_request_context,
    set_request_context,
    clear_request_context,
)
from authcore.utils.logging import setup_logging, get_logger

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_request_context",
    "set_request_context",
    "clear_request_context",
]
