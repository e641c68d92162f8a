"""Application-level exception types.

Domain errors raised by the HTTP layer, mapped to consistent JSON responses
by the global exception handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    window_seconds: int
    policy: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # So str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a caller has exhausted its quota.

    Attributes:
        headers: Rate limit headers (Retry-After, X-RateLimit-*) for the
            429 response.
    """

    headers: dict[str, str] = field(default_factory=dict)


class AuthenticationAppError(AppError):
    """Raised when an admin credential is missing or invalid."""
