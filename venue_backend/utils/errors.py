"""
Typed error taxonomy for the booking services.

Every error carries an HTTP status and a stable machine code. Messages are
what crosses the trust boundary, so they stay generic; details belong in logs.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookingServiceError(Exception):
    """Base class for all typed service errors"""
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"
    
    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)
    
    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(BookingServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class InvalidTransitionError(ValidationError):
    code = "INVALID_TRANSITION"
    default_message = "Status transition not allowed"


class UnauthorizedError(BookingServiceError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(BookingServiceError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(BookingServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class ExternalServiceError(BookingServiceError):
    """Upstream (blob, mail, identity) failure; not the caller's fault"""
    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"
    default_message = "Upstream service error"
    
    def __init__(self, message: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        if upstream_status is not None and upstream_status >= 400:
            self.status_code = upstream_status


class OperationTimeoutError(BookingServiceError):
    """Wall-clock budget exceeded. Retryable."""
    status_code = 503
    code = "TIMEOUT"
    default_message = "Operation timed out, retry later"
    retry_after_seconds = 60
    
    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after_seconds)}


class InternalError(BookingServiceError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"


def error_body(code: str, message: str, request_id: Optional[str] = None) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message},
        "meta": {
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Render typed errors in the standard envelope"""
    
    @app.exception_handler(BookingServiceError)
    async def booking_service_error_handler(request: Request, exc: BookingServiceError):
        request_id = getattr(request.state, "request_id", None)
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message, request_id),
            headers=exc.headers,
        )
    
    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=error_body(InternalError.code, InternalError.default_message, request_id),
        )
