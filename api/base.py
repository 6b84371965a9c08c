"""Response envelope shared by every ledger endpoint, plus the error codes clients branch on."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field
from starlette.requests import Request

from utils.timezone import now_utc


class APIError(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Matches the X-Request-ID response header")


class APIResponse(BaseModel):
    """
    Envelope for all API responses.

    Exactly one of data / error is meaningful, selected by success. Public
    verification responses use the same envelope as authenticated ones.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def request_id_of(request: Request | None) -> str:
    """The id RequestIDMiddleware assigned, or a fresh one outside a request."""
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    return str(uuid4())


def _meta(request: Request | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id_of(request))


def success_response(data: Any, request: Request | None = None) -> APIResponse:
    return APIResponse(success=True, data=data, meta=_meta(request))


def error_response(code: str, message: str, request: Request | None = None) -> APIResponse:
    return APIResponse(
        success=False,
        error=APIError(code=code, message=message),
        meta=_meta(request),
    )


class ErrorCodes:
    """Clients branch on these, never on messages."""

    # Access
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    RATE_LIMITED = "RATE_LIMITED"

    # Request shape
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Invoice lifecycle
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    INVOICE_IMMUTABLE = "INVOICE_IMMUTABLE"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    VERIFICATION_REQUIRED = "VERIFICATION_REQUIRED"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"

    # Integrity
    INTEGRITY_MISMATCH = "INTEGRITY_MISMATCH"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
