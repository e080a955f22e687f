# tests/middleware/test_correlation_id.py
"""
Tests for correlation ID middleware and context management.
"""

import uuid

from fastapi.testclient import TestClient

from authcore.dependencies import CurrentSubject
from authcore.middleware.correlation import MAX_CORRELATION_ID_LENGTH
from authcore.utils.context import (
    clear_correlation_id,
    clear_request_context,
    get_correlation_id,
    get_request_context,
    set_correlation_id,
    set_request_context,
)


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_get_returns_none_when_not_set(self):
        """Should return None when correlation ID is not set."""
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_set_and_get_correlation_id(self):
        """Should set and retrieve correlation ID."""
        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"
        clear_correlation_id()

    def test_clear_correlation_id(self):
        """Should clear correlation ID."""
        set_correlation_id("test-correlation-456")
        clear_correlation_id()
        assert get_correlation_id() is None


class TestRequestContext:
    """Tests for the per-request context dict."""

    def test_empty_by_default(self):
        clear_request_context()
        assert get_request_context() == {}

    def test_set_and_get(self):
        set_request_context("user_id", "user-1")
        assert get_request_context() == {"user_id": "user-1"}
        clear_request_context()

    def test_returned_dict_is_a_copy(self):
        set_request_context("user_id", "user-1")
        get_request_context()["user_id"] = "someone-else"

        assert get_request_context()["user_id"] == "user-1"
        clear_request_context()


class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    def test_generates_correlation_id_when_not_provided(self, client: TestClient):
        """Should generate a UUID when no header is provided."""
        response = client.get("/health/live")

        assert response.status_code == 200
        uuid.UUID(response.headers["X-Correlation-ID"])

    def test_uses_provided_correlation_id(self, client: TestClient):
        """Should echo back the X-Correlation-ID header."""
        response = client.get("/health/live", headers={"X-Correlation-ID": "my-custom-id-123"})

        assert response.headers["X-Correlation-ID"] == "my-custom-id-123"

    def test_uses_request_id_as_fallback(self, client: TestClient):
        """Should use X-Request-ID when X-Correlation-ID is absent."""
        response = client.get("/health/live", headers={"X-Request-ID": "request-id-456"})

        assert response.headers["X-Correlation-ID"] == "request-id-456"

    def test_correlation_id_preferred_over_request_id(self, client: TestClient):
        response = client.get(
            "/health/live",
            headers={"X-Correlation-ID": "correlation", "X-Request-ID": "request"},
        )

        assert response.headers["X-Correlation-ID"] == "correlation"

    def test_oversized_id_replaced(self, client: TestClient):
        response = client.get("/health/live", headers={"X-Correlation-ID": "x" * (MAX_CORRELATION_ID_LENGTH + 1)})

        assert response.headers["X-Correlation-ID"] != "x" * (MAX_CORRELATION_ID_LENGTH + 1)
        uuid.UUID(response.headers["X-Correlation-ID"])

    def test_different_requests_get_different_ids(self, client: TestClient):
        first = client.get("/health/live").headers["X-Correlation-ID"]
        second = client.get("/health/live").headers["X-Correlation-ID"]

        assert first != second


class TestUserIdInRequestContext:
    """Authenticated routes see the caller's id in the logging context."""

    def test_user_id_visible_to_route(self, app, client: TestClient, register, sign_in):
        def whoami(subject: CurrentSubject) -> dict:
            return {"context": get_request_context(), "subject": subject.user_id}

        app.add_api_route("/whoami", whoami)
        user_id = register("alice")["id"]

        response = client.get("/whoami", headers=sign_in("alice"))

        assert response.json() == {"context": {"user_id": user_id}, "subject": user_id}

    def test_context_cleared_after_request(self, client: TestClient, register, sign_in):
        register("alice")
        client.get("/profile", headers=sign_in("alice"))

        assert get_request_context() == {}
