"""
Service-layer exception hierarchy and its HTTP mapping.

Services raise these; they never build HTTP responses themselves.  The
handlers registered by ``register_exception_handlers`` turn every error
into the standard ``{status, message, code, data}`` envelope.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from marketplace.config import settings
from marketplace.middleware import correlation_id_var

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base service error."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors


class NotFoundError(ServiceError):
    """Raised when an entity id or slug does not resolve."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    """Raised on a uniqueness violation or an illegal state transition."""

    status_code = 409
    code = "CONFLICT"


class ValidationError(ServiceError):
    """Raised when input passes schema validation but fails business rules."""

    status_code = 400
    code = "VALIDATION_FAILED"


# ---------------------------------------------------------------------------
# HTTP mapping
# ---------------------------------------------------------------------------

def error_body(message: str, code: str, errors: list[dict] | None = None) -> dict:
    body = {"status": "error", "message": message, "code": code, "data": None}
    if errors:
        body["errors"] = errors
    return body


def _log(request: Request, status_code: int, message: str, exc: Exception | None = None) -> None:
    line = "%s %s - %d - %s [correlation_id=%s]"
    args = (request.method, request.url.path, status_code, message, correlation_id_var.get())
    if status_code >= 500:
        logger.error(line, *args, exc_info=exc)
    else:
        logger.warning(line, *args)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    _log(request, exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.errors),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    _log(request, 400, "Validation failed")
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", ValidationError.code, errors),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort 500.  Starlette answers it from the outermost middleware,
    outside ``TimingMiddleware``, so the correlation id header is set here.
    """
    _log(request, 500, str(exc), exc)
    message = str(exc) if settings.APP_ENV != "production" else "Internal server error"
    return JSONResponse(
        status_code=500,
        content=error_body(message, ServiceError.code),
        headers={"X-Correlation-ID": correlation_id_var.get()},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
