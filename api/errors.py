"""Global exception handlers for FastAPI.

Ledger errors map to specific status codes and error codes so the app UI
can branch on them. Anything unexpected becomes a generic 500 with the
details kept in the log.
"""

import logging

import psycopg2.errors
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from api.rate_limiter import RateLimitedError
from core.errors import (
    AuditWriteError,
    ConcurrencyConflict,
    ImmutableInvoice,
    IntegrityMismatch,
    InvalidStateTransition,
    LedgerError,
    NotFound,
    PreconditionFailed,
    VerificationRequired,
)

logger = logging.getLogger(__name__)

# Most specific first
_LEDGER_ERROR_MAP: list[tuple[type[LedgerError], int, str]] = [
    (NotFound, 404, ErrorCodes.NOT_FOUND),
    (ImmutableInvoice, 409, ErrorCodes.INVOICE_IMMUTABLE),
    (InvalidStateTransition, 409, ErrorCodes.INVALID_STATUS_TRANSITION),
    (VerificationRequired, 403, ErrorCodes.VERIFICATION_REQUIRED),
    (PreconditionFailed, 422, ErrorCodes.PRECONDITION_FAILED),
    (ConcurrencyConflict, 409, ErrorCodes.CONCURRENCY_CONFLICT),
    (IntegrityMismatch, 409, ErrorCodes.INTEGRITY_MISMATCH),
]


def _json(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    headers: dict | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request).model_dump(mode="json"),
        headers=headers,
    )


def ledger_error_status(exc: LedgerError) -> tuple[int, str]:
    """Status code and error code for a ledger error."""
    for error_type, status_code, code in _LEDGER_ERROR_MAP:
        if isinstance(exc, error_type):
            return status_code, code
    return 500, ErrorCodes.INTERNAL_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code, code = ledger_error_status(exc)
        if status_code == 500 or isinstance(exc, AuditWriteError):
            logger.error("Ledger operation failed: %s", exc, exc_info=exc)
            return _json(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
        if isinstance(exc, IntegrityMismatch):
            logger.warning("Integrity mismatch surfaced to API: %s", exc)
        return _json(request, status_code, code, str(exc))

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return _json(
            request,
            429,
            ErrorCodes.RATE_LIMITED,
            "Too many requests",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(psycopg2.errors.QueryCanceled)
    async def timeout_handler(request: Request, exc: psycopg2.errors.QueryCanceled):
        logger.warning("Statement timeout on %s", request.url.path)
        return _json(request, 503, ErrorCodes.SERVICE_UNAVAILABLE, "The request timed out; re-check status before retrying")

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors(include_url=False)))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _json(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
