"""Diagnostic endpoints for the rate limiter."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from luminal.adapters.rate_limit.base import key_fingerprint
from luminal.core.auth import verify_admin_key
from luminal.core.client_key import INVALID_IP, sanitize_ip
from luminal.core.errors import ValidationAppError
from luminal.core.rate_limit import client_key_for, enforce_strict_rate_limit, get_rate_limiter
from luminal.schemas.rate_limit import (
    RateLimitResetRequest,
    RateLimitResetResponse,
    RateLimitStatsResponse,
    RateLimitStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rate-limit", tags=["Rate Limit"])


@router.get("/stats", response_model=RateLimitStatsResponse)
def rate_limit_stats(request: Request) -> RateLimitStatsResponse:
    stats = get_rate_limiter(request).get_stats()
    return RateLimitStatsResponse(
        total_requests=stats.total_requests,
        blocked_requests=stats.blocked_requests,
        active_keys=stats.active_keys,
    )


@router.get("/status", response_model=RateLimitStatusResponse)
def rate_limit_status(request: Request) -> RateLimitStatusResponse:
    """Report the caller's admission state without consuming quota.

    The request itself has already been accounted by the rate limit
    middleware, so the reported ``remaining`` includes it.
    """

    limiter = get_rate_limiter(request)
    config = limiter.default_config
    result = limiter.check_limit(client_key_for(request))
    return RateLimitStatusResponse(
        allowed=result.allowed,
        limit=config.max_requests,
        remaining=result.remaining,
        reset_time=result.reset_time,
        retry_after=result.retry_after,
        window_seconds=config.window_seconds,
        policy=config.identifier,
    )


@router.post(
    "/reset",
    response_model=RateLimitResetResponse,
    dependencies=[Depends(verify_admin_key), Depends(enforce_strict_rate_limit)],
)
def reset_rate_limit(request: Request, payload: RateLimitResetRequest) -> RateLimitResetResponse:
    """Clear the main-policy window and any active block of a target client.

    Operator-only: requires a valid ``X-Admin-Key``. Clients cannot reset
    their own quota.

    Raises:
        ValidationAppError: If ``client_ip`` is not a valid address.
    """

    client_ip = sanitize_ip(payload.client_ip)
    if client_ip == INVALID_IP:
        raise ValidationAppError(
            code="invalid_client_ip",
            message="client_ip must be a valid IPv4 or IPv6 address",
            details={"hint": "Pass the address exactly as clients are keyed, e.g. 203.0.113.7"},
        )

    key = f"ip:{client_ip}"
    get_rate_limiter(request).reset(key)
    key_hash = key_fingerprint(key)
    logger.info("rate_limit.admin_reset", extra={"key_hash": key_hash})
    return RateLimitResetResponse(key_hash=key_hash)
