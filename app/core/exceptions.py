"""
Exception taxonomy and global exception handling.
Every error leaves the API in the same JSON envelope:
{"error": {"code", "message", "details", "path", "requestId"}}.
"""

import traceback
from typing import Any, Dict, Optional

import structlog
from asgi_correlation_id import correlation_id
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)


class ValidationException(AppError):
    """Malformed or semantically invalid input."""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class UnauthorizedException(AppError):
    """Authentication failure error."""
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details, {"WWW-Authenticate": "Bearer"})


class ForbiddenException(AppError):
    """Authorization failure error."""
    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class EntityNotFoundException(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "Entity not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class ConflictException(AppError):
    """Uniqueness conflict, e.g. an email that is already registered."""
    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class RateLimitExceededException(AppError):
    """Too many requests for the current window."""
    def __init__(self, message: str = "Too many requests. Try again later.", retry_after: int = 0):
        super().__init__(
            message,
            status.HTTP_429_TOO_MANY_REQUESTS,
            {"retryAfter": retry_after},
            {"Retry-After": str(max(retry_after, 1))},
        )


class UpstreamServiceException(AppError):
    """A collaborator (payment processor, object storage, database) failed."""
    def __init__(self, message: str = "Upstream service failure", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


def _envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
    exc: Optional[BaseException] = None,
) -> JSONResponse:
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "details": details if details is not None else {},
        "path": request.url.path,
        "requestId": correlation_id.get(),
    }
    if exc is not None and not getattr(request.app.state, "is_production", True):
        error["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Application error", code=exc.__class__.__name__, message=exc.message, path=request.url.path)
        trace_source: Optional[BaseException] = exc
    else:
        trace_source = None
    return _envelope(
        request,
        exc.status_code,
        exc.__class__.__name__,
        exc.message,
        exc.details,
        exc.headers,
        trace_source,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Field-level 400 instead of FastAPI's default 422."""
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        fields.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return _envelope(
        request,
        status.HTTP_400_BAD_REQUEST,
        "ValidationException",
        "Request validation failed",
        {"fields": fields},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(
        request,
        exc.status_code,
        "HTTPException",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""
    logger.exception("Unexpected error occurred", path=request.url.path)
    return _envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred. Please try again later.",
        exc=exc,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
