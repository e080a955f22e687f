# authcore/middleware/correlation.py
"""
Correlation ID middleware.

Every request gets a correlation id, taken from the first of:
1. X-Correlation-ID request header
2. X-Request-ID request header
3. A freshly generated UUID4

The id is stored in the logging context for the duration of the request
and echoed back in the X-Correlation-ID response header, including on
error responses.
"""

import uuid
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from authcore.utils.context import (
    clear_correlation_id,
    clear_request_context,
    set_correlation_id,
)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Incoming ids longer than this are replaced rather than logged verbatim
MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to each request and its response."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = self._get_correlation_id(request)
        set_correlation_id(correlation_id)
        clear_request_context()

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()
            clear_request_context()

    def _get_correlation_id(self, request: Request) -> str:
        for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
            value = request.headers.get(header)
            if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
                return value
        return str(uuid.uuid4())
