# authcore/utils/context.py
"""
Request-scoped context for log enrichment.

Holds, per request:
- correlation_id: set by CorrelationIdMiddleware
- request context dict: currently ``user_id`` once a bearer token has
  been authenticated

Backed by contextvars, so values follow the request through await points
and into threadpool calls started after they were set.

Usage:
    from authcore.utils.context import set_request_context, get_request_context

    set_request_context("user_id", subject.user_id)
    get_request_context().get("user_id")
"""

from contextvars import ContextVar
from typing import Any

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_request_context_var: ContextVar[dict[str, Any] | None] = ContextVar("request_context", default=None)


# =============================================================================
# CORRELATION ID
# =============================================================================

def get_correlation_id() -> str | None:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

def get_request_context() -> dict[str, Any]:
    """Return a copy of the current request context (empty outside a request)."""
    return dict(_request_context_var.get() or {})


def set_request_context(key: str, value: Any) -> None:
    """
    Set one key in the request context.

    The dict is copied on write; a context var must never hand a shared
    mutable default to concurrent requests.
    """
    ctx = dict(_request_context_var.get() or {})
    ctx[key] = value
    _request_context_var.set(ctx)


def clear_request_context() -> None:
    _request_context_var.set(None)
