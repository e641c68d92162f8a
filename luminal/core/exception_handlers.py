"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses map to an HTTP status (400, 403, 429)
- Unexpected Exception falls back to a generic 500
- Every error body carries the request_id for tracing
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from luminal.core.errors import AppError, AuthenticationAppError, RateLimitExceededError
from luminal.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, AuthenticationAppError):
        return 403
    return 400


def app_error_response(exc: AppError) -> JSONResponse:
    """Render an AppError in the standard error envelope.

    The body is ``{"error": {"code", "message", "request_id", "details?"}}``.
    Rate limit errors also carry their Retry-After / X-RateLimit-* headers.
    """
    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = exc.headers if isinstance(exc, RateLimitExceededError) else None
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"error": error_content},
        headers=headers or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the mapped status code and error details.
    """
    response = app_error_response(exc)

    # Rate limit rejections are logged where they happen
    if not isinstance(exc, RateLimitExceededError):
        logger.warning(
            "app_error_handled",
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "status_code": response.status_code,
                "has_details": bool(exc.details),
                "request_path": request.url.path,
            },
        )
    return response


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure with context and returns a generic message; no
    exception text or traceback reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
