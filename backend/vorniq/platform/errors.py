"""
API error shape for the VorniQ backend.

Every failure leaves the API as

    {"error": {"code": ..., "message": ..., "details": {...}}}

with the request's X-Correlation-ID echoed back. Two error families feed
that shape:
- ApiError subclasses raised by routes and dependencies
- EntitlementError subclasses raised by the engine (status from
  ENTITLEMENT_ERROR_STATUS)

Stack traces stay in the server log.
"""

import logging
import uuid
from http import HTTPStatus
from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from vorniq.entitlements.errors import (
    EntitlementError,
    EntitlementLookupFailedError,
    IdentityUnavailableError,
    MalformedServiceIdListError,
    UnknownServiceError,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

ENTITLEMENT_ERROR_STATUS = {
    UnknownServiceError: status.HTTP_404_NOT_FOUND,
    MalformedServiceIdListError: status.HTTP_400_BAD_REQUEST,
    IdentityUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    EntitlementLookupFailedError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class ApiError(Exception):
    """Base for errors a route raises on purpose. Subclasses fix code and status."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ApiError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ApiError):
    code = "AUTHENTICATION_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required", details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)


class PaymentRequiredError(ApiError):
    """The caller's subscription does not unlock the service."""

    code = "PAYMENT_REQUIRED"
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, message: str = "This service requires a subscription", details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)


class NotFoundError(ApiError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Optional[str] = None):
        if identifier:
            message = f"{resource} '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, {"resource": resource, "id": identifier} if identifier else None)


def entitlement_error_status(exc: EntitlementError) -> int:
    for cls in type(exc).__mro__:
        if cls in ENTITLEMENT_ERROR_STATUS:
            return ENTITLEMENT_ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def request_correlation_id(request: Request) -> str:
    """Id set by CorrelationIdMiddleware, else the inbound header, else a fresh one."""
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        return correlation_id
    return request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.correlation_id = request_correlation_id(request)
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = request.state.correlation_id
        return response


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    correlation_id = request_correlation_id(request)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed",
        extra={
            "correlation_id": correlation_id,
            "error_code": code,
            "status_code": status_code,
            "path": request.url.path,
            "method": request.method,
            "principal_id": getattr(request.state, "principal_id", None),
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or {}}},
        headers={**(headers or {}), CORRELATION_HEADER: correlation_id},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)


async def entitlement_error_handler(request: Request, exc: EntitlementError) -> JSONResponse:
    # to_dict() carries the error code and message; anything else is detail
    body = exc.to_dict()
    details = {k: v for k, v in body.items() if k not in ("error", "message")}
    return _error_response(request, entitlement_error_status(exc), exc.error_code, exc.message, details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    return _error_response(request, exc.status_code, code, str(exc.detail), headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    return _error_response(
        request,
        HTTPStatus.UNPROCESSABLE_ENTITY,
        "INVALID_REQUEST",
        "Request failed validation",
        {"fields": fields},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", extra={"error_type": type(exc).__name__})
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An unexpected error occurred",
        {"correlation_id": request_correlation_id(request)},
    )


def register_error_handlers(app) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(EntitlementError, entitlement_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
