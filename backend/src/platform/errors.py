"""
Consistent error handling for PharOS.

All API errors MUST use these standard error classes and shapes.
Stack traces are NEVER returned to clients.

Response envelope:
    {"ok": false, "error": {"code": "...", "message": "...", "details": {...}}}

Standard HTTP status codes:
- 400: Bad Request (validation errors)
- 401: Unauthorized (no session / expired session)
- 403: Forbidden (CSRF failure, no membership, insufficient role, plan locked)
- 404: Not Found
- 409: Conflict (duplicate)
- 429: Too Many Requests (rate limit)
- 500: Internal Server Error
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    """Closed set of error codes exposed to clients."""
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CSRF_INVALID = "CSRF_INVALID"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    INTERNAL = "INTERNAL"


# HTTP status -> code for framework-raised HTTP errors
_STATUS_TO_CODE: Dict[int, ErrorCode] = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.BAD_REQUEST,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.BAD_REQUEST,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.TOO_MANY_REQUESTS,
}


def error_body(code: ErrorCode, message: str, details: Optional[dict] = None) -> dict:
    return {
        "ok": False,
        "error": {
            "code": code.value,
            "message": message,
            "details": details or {},
        },
    }


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return error_body(self.code, self.message, self.details)


class AuthError(AppError):
    """Base for authentication (401) and authorization (403) failures."""


class AuthenticationError(AuthError):
    """No session, or the session expired (401)."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            code=ErrorCode.UNAUTHORIZED,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class PermissionDeniedError(AuthError):
    """
    Authenticated but not allowed (403).

    Used for both "no membership in this workspace" and "role too low".
    SECURITY: the message is always generic so a caller cannot tell whether
    the workspace exists.
    """

    def __init__(self):
        super().__init__(
            code=ErrorCode.FORBIDDEN,
            message="Forbidden",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class CsrfError(AppError):
    """CSRF token missing or mismatched on a mutating request (403)."""

    def __init__(self, message: str = "CSRF token missing or invalid"):
        super().__init__(
            code=ErrorCode.CSRF_INVALID,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class RateLimitError(AppError):
    """Rate limit exceeded (429)."""

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = dict(details or {})
        headers = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
            headers["Retry-After"] = str(retry_after)
        super().__init__(
            code=ErrorCode.TOO_MANY_REQUESTS,
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
            headers=headers,
        )
        self.retry_after = retry_after


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, resource: str):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ConflictError(AppError):
    """Resource conflict (409)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.CONFLICT,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


@dataclass(frozen=True)
class GuardFailure:
    """
    Result value produced by a guard that rejected a request.

    Guards return ``None`` to let the request through or a GuardFailure to
    short-circuit it. ``to_error`` converts the failure into the matching
    AppError for rendering at the outermost composition point.
    """

    code: ErrorCode
    message: str
    http_status: int
    retry_after: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_error(self) -> AppError:
        if self.code == ErrorCode.CSRF_INVALID:
            return CsrfError(self.message)
        if self.code == ErrorCode.TOO_MANY_REQUESTS:
            return RateLimitError(self.message, retry_after=self.retry_after, details=self.details)
        if self.code == ErrorCode.UNAUTHORIZED:
            return AuthenticationError(self.message)
        if self.code == ErrorCode.FORBIDDEN:
            return PermissionDeniedError()
        return AppError(self.code, self.message, self.http_status, self.details)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return str(uuid.uuid4())


def get_correlation_id(request: Request) -> str:
    """
    Get correlation ID from request or generate new one.

    Checks X-Correlation-ID header first, then request state.
    """
    correlation_id = request.headers.get("X-Correlation-ID")
    if correlation_id:
        return correlation_id

    if hasattr(request.state, "correlation_id"):
        return request.state.correlation_id

    return generate_correlation_id()


def _correlation_headers(request: Request, extra: Optional[dict] = None) -> dict:
    headers = dict(extra or {})
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        headers["X-Correlation-ID"] = correlation_id
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError raised by a dependency or route handler."""
    logger.warning(
        "Application error",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "error_code": exc.code.value,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=_correlation_headers(request, exc.headers),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Convert framework HTTP exceptions (404 route, 405) to the standard envelope."""
    code = _STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL)
    message = exc.detail if isinstance(exc.detail, str) else code.value
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message),
        headers=_correlation_headers(request, getattr(exc, "headers", None)),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body / query validation failures become 400 BAD_REQUEST."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ErrorCode.BAD_REQUEST, "Invalid request payload", {"fields": fields}),
        headers=_correlation_headers(request),
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Outermost error boundary.

    Stamps every response with X-Correlation-ID and converts anything that
    escaped the exception handlers into a consistent error response.

    IMPORTANT: Stack traces are NEVER returned to clients.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = get_correlation_id(request)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except AppError as e:
            logger.warning(
                "Application error",
                extra={
                    "correlation_id": correlation_id,
                    "error_code": e.code.value,
                    "status_code": e.status_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            headers = dict(e.headers)
            headers["X-Correlation-ID"] = correlation_id
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict(),
                headers=headers,
            )

        except Exception as e:
            logger.exception(
                "Unhandled exception",
                extra={
                    "correlation_id": correlation_id,
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body(
                    ErrorCode.INTERNAL,
                    "An unexpected error occurred",
                    {"correlation_id": correlation_id},
                ),
                headers={"X-Correlation-ID": correlation_id},
            )


def register_error_handlers(app) -> None:
    """Install the exception handlers and error middleware on an app."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_middleware(ErrorHandlerMiddleware)
