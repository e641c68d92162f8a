"""Admin key authentication for operator endpoints.

Keys are validated against a comma-separated list from the environment
(``APP_ADMIN_API_KEYS``). With no keys configured, admin endpoints are
disabled rather than open.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from luminal.adapters.rate_limit.base import key_fingerprint
from luminal.core.config import parse_path_list, settings
from luminal.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_admin_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated admin keys into a set.

    Examples:
        >>> sorted(parse_admin_keys("k1, k2 ,k1"))
        ['k1', 'k2']
        >>> parse_admin_keys(None)
        set()
    """
    return set(parse_path_list(keys_string))


def validate_admin_key(provided_key: str | None) -> None:
    """Check ``provided_key`` against the configured admin keys.

    Raises:
        AuthenticationAppError: If admin keys are not configured, or the key
            is missing or does not match.
    """
    valid_keys = parse_admin_keys(settings.app.admin_api_keys)
    if not valid_keys:
        logger.warning("admin_auth.failed", extra={"reason": "admin_keys_not_configured"})
        raise AuthenticationAppError(
            code="admin_disabled",
            message="Admin endpoints are disabled",
            details={"hint": "Set APP_ADMIN_API_KEYS to enable admin endpoints"},
        )

    if not provided_key or not any(
        hmac.compare_digest(provided_key.encode(), key.encode()) for key in valid_keys
    ):
        logger.warning(
            "admin_auth.failed",
            extra={
                "reason": "invalid_admin_key" if provided_key else "missing_admin_key",
                "admin_key_hash": key_fingerprint(provided_key) if provided_key else None,
            },
        )
        raise AuthenticationAppError(
            code="invalid_admin_key",
            message="Invalid or missing admin key",
        )


async def verify_admin_key(
    x_admin_key: Annotated[str | None, Header(alias="X-Admin-Key")] = None,
) -> None:
    """FastAPI dependency guarding admin endpoints with ``X-Admin-Key``.

    Raises:
        AuthenticationAppError: Rendered as 403 by the global handler.
    """
    validate_admin_key(x_admin_key)
