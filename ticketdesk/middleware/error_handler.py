"""
Error handling middleware rendering every failure as one JSON envelope.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    TicketDeskError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ConflictError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)


STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INSUFFICIENT_CAPACITY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_BOOKING_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_ATTENDED: status.HTTP_403_FORBIDDEN,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_REVIEWED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_ON_WAITLIST: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_envelope(exc: TicketDeskError, error_id: str) -> Dict[str, Any]:
    """Build the response body for a platform error."""
    return {
        "error": exc.to_dict(),
        "error_id": error_id,
        "timestamp": _timestamp()
    }


def status_code_for(exc: TicketDeskError) -> int:
    """Map a platform error to its HTTP status code."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as 400 in the standard envelope."""
    field_errors: Dict[str, list] = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        field_errors.setdefault(field_path or "body", []).append(error["msg"])

    error_id = str(uuid4())
    logger.warning(
        f"Request validation failed [{error_id}]: {request.method} {request.url.path}",
        extra={"error_id": error_id, "field_errors": field_errors}
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(ValidationError("Request validation failed", field_errors=field_errors), error_id)
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for error handling and response formatting."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any exceptions."""
        error_id = str(uuid4())

        try:
            response = await call_next(request)
            return response

        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        """Handle different types of exceptions and return appropriate responses."""
        self._log_error(request, exc, error_id)

        if isinstance(exc, TicketDeskError):
            return JSONResponse(
                status_code=status_code_for(exc),
                content=error_envelope(exc, error_id)
            )
        elif isinstance(exc, IntegrityError):
            return self._handle_integrity_error(exc, error_id)
        elif isinstance(exc, (OperationalError, SQLTimeoutError)):
            return self._handle_database_error(exc, error_id)
        else:
            return self._handle_unexpected_error(exc, error_id)

    def _handle_integrity_error(self, exc: IntegrityError, error_id: str) -> JSONResponse:
        """Handle database integrity constraint violations."""
        error_message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()

        if "unique" in error_message:
            conflict = ConflictError("A record with this information already exists", details={"constraint_type": "unique"})
        elif "foreign key" in error_message:
            conflict = ConflictError("Referenced resource does not exist", details={"constraint_type": "foreign_key"})
        else:
            conflict = ConflictError("Data integrity constraint violation", details={"constraint_type": "unknown"})

        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_envelope(conflict, error_id)
        )

    def _handle_database_error(self, exc: Exception, error_id: str) -> JSONResponse:
        """Handle database connection and operational errors."""
        unavailable = ExternalServiceError("database", "Database service temporarily unavailable")

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_envelope(unavailable, error_id),
            headers={"Retry-After": "30"}
        )

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        """Handle unexpected errors."""
        internal = TicketDeskError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )

        response_data = error_envelope(internal, error_id)
        if self.debug:
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response_data
        )

    def _log_error(self, request: Request, exc: Exception, error_id: str) -> None:
        """Log error with request context."""
        request_info = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, (ValidationError, NotFoundError, UnauthorizedError, ForbiddenError, ConflictError)):
            logger.warning(
                f"Client error [{error_id}]: {exc.message}",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code.value,
                    "request": request_info,
                    "details": exc.details
                }
            )
        elif isinstance(exc, TicketDeskError):
            logger.error(
                f"Service error [{error_id}]: {exc.message}",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code.value,
                    "request": request_info,
                    "details": exc.details
                }
            )
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                extra={
                    "error_id": error_id,
                    "error_type": type(exc).__name__,
                    "request": request_info,
                    "traceback": traceback.format_exc()
                }
            )
