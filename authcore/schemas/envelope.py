# authcore/schemas/envelope.py
"""
Uniform response envelope.

Every endpoint, success or failure, returns:

    {"status": "success" | "error", "message": "...", "data": ... | null}

Routers build success envelopes with ``ok()``; the exception handlers in
``authcore.main`` build error envelopes with ``error_body()``.
"""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Response envelope shared by all endpoints."""

    status: Literal["success", "error"] = Field(
        ...,
        description="Outcome of the request",
    )
    message: str = Field(
        ...,
        description="Human-readable summary",
    )
    data: DataT | None = Field(
        default=None,
        description="Payload (null when there is nothing to return)",
    )


def ok(message: str, data: Any = None) -> ApiResponse:
    return ApiResponse(status="success", message=message, data=data)


def error_body(message: str, data: Any = None) -> dict[str, Any]:
    """JSON-ready error envelope."""
    return {"status": "error", "message": message, "data": data}
