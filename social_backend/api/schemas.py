"""
Pydantic schemas and the response envelope for the Social Backend REST API.

Every response body has the shape:
    {"success": true, "message": ..., "data": {...}}
    {"success": false, "error": {"code": ..., "message": ...}}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Error Codes
# =============================================================================

AUTH_REQUIRED = "AUTH_REQUIRED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"

_STATUS_CODES: dict[int, str] = {
    401: AUTH_REQUIRED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    422: VALIDATION_ERROR,
}


def code_for_status(status_code: int) -> str:
    return _STATUS_CODES.get(status_code, INTERNAL_ERROR)


# =============================================================================
# Envelope
# =============================================================================


class APIError(BaseModel):
    """Standard API error body."""

    code: str
    message: str


class ResponseEnvelope(BaseModel):
    """Standard API response wrapper."""

    success: bool
    message: str | None = None
    data: dict[str, Any] | None = None
    error: APIError | None = None


def success_response(data: dict[str, Any] | None = None, message: str | None = None) -> dict[str, Any]:
    """Build a success envelope."""
    return ResponseEnvelope(success=True, message=message, data=data).model_dump(exclude_none=True)


def error_response(code: str, message: str) -> dict[str, Any]:
    """Build an error envelope."""
    return ResponseEnvelope(
        success=False,
        error=APIError(code=code, message=message),
    ).model_dump(exclude_none=True)


# =============================================================================
# Erasure Schemas
# =============================================================================


class ErasureResponseData(BaseModel):
    """Payload returned after a completed erasure."""

    deleted_records: dict[str, int] = Field(default_factory=dict)
    duration_ms: int = Field(..., ge=0)
    already_deleted: bool = False


class ErasurePreviewData(BaseModel):
    """Counts of what an erasure would remove."""

    user_id: int
    counts: dict[str, int] = Field(default_factory=dict)


__all__ = [
    "AUTH_REQUIRED",
    "FORBIDDEN",
    "INTERNAL_ERROR",
    "NOT_FOUND",
    "VALIDATION_ERROR",
    "APIError",
    "ErasurePreviewData",
    "ErasureResponseData",
    "ResponseEnvelope",
    "code_for_status",
    "error_response",
    "success_response",
]
