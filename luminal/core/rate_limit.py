"""Rate limiting wiring for the HTTP layer.

This module turns limiter results into HTTP semantics:
- The limiter instance is owned by the application (``app.state``) and built
  once from settings by the app factory.
- Allowed requests get informational ``X-RateLimit-*`` headers.
- Rejected requests become ``RateLimitExceededError`` (HTTP 429) carrying
  ``Retry-After``.
- Sensitive endpoints add a stricter policy on top via a dependency.
"""

from __future__ import annotations

import logging
import time

from fastapi import Request

from luminal.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitOverrides,
    RateLimitResult,
    key_fingerprint,
)
from luminal.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from luminal.core.client_key import build_client_key
from luminal.core.config import AppSettings, settings
from luminal.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

STRICT_KEY_PREFIX = "strict:"


def build_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter:
    """Build the limiter for the main policy from settings.

    Args:
        app_settings: Settings to read; defaults to the global settings.

    Returns:
        A started in-memory limiter. The caller owns it and must close it.
    """

    cfg = app_settings or settings.app
    default_config = RateLimitConfig(
        max_requests=cfg.rate_limit_max_requests,
        window_seconds=cfg.rate_limit_window_seconds,
        block_duration_seconds=cfg.rate_limit_block_duration_seconds,
        identifier=cfg.rate_limit_identifier,
    )
    return InMemorySlidingWindowRateLimiter(
        default_config,
        sweep_interval_seconds=cfg.rate_limit_sweep_interval_seconds,
        idle_ttl_seconds=cfg.rate_limit_idle_ttl_seconds,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """FastAPI dependency returning the application's limiter."""
    return request.app.state.rate_limiter


def client_key_for(request: Request) -> str:
    return build_client_key(
        request, trust_proxy_headers=settings.app.rate_limit_trust_proxy_headers
    )


def strict_overrides(app_settings: AppSettings | None = None) -> RateLimitOverrides:
    cfg = app_settings or settings.app
    return {
        "max_requests": cfg.strict_rate_limit_max_requests,
        "window_seconds": cfg.strict_rate_limit_window_seconds,
        "block_duration_seconds": cfg.strict_rate_limit_block_duration_seconds,
        "identifier": "strict",
    }


def retry_after_seconds(result: RateLimitResult) -> int:
    """Seconds a rejected caller should wait.

    Falls back to ``reset_time`` when the rejection comes from a full window
    rather than an active block.
    """
    if result.retry_after is not None:
        return result.retry_after
    return result.reset_time


def build_rate_limit_headers(
    result: RateLimitResult,
    config: RateLimitConfig,
    *,
    now: float | None = None,
) -> dict[str, str]:
    """Build the informational ``X-RateLimit-*`` headers.

    ``X-RateLimit-Reset`` is expressed as UNIX epoch seconds.
    """
    current = time.time() if now is None else now
    return {
        "X-RateLimit-Limit": str(config.max_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(current + result.reset_time)),
    }


def build_rate_limit_error(
    result: RateLimitResult,
    config: RateLimitConfig,
    *,
    include_headers: bool,
) -> RateLimitExceededError:
    """Translate a rejected result into a 429 domain error."""
    retry_after = retry_after_seconds(result)

    headers = {"Retry-After": str(retry_after)}
    if include_headers:
        headers.update(build_rate_limit_headers(result, config))

    return RateLimitExceededError(
        code="rate_limit_exceeded",
        message="Rate limit exceeded. Try again later.",
        details={
            "retry_after": retry_after,
            "limit": config.max_requests,
            "window_seconds": config.window_seconds,
            "policy": config.identifier,
        },
        headers=headers,
    )


def log_rate_limit_exceeded(
    key: str, result: RateLimitResult, config: RateLimitConfig, request: Request
) -> None:
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_fingerprint(key),
            "policy": config.identifier,
            "path": request.url.path,
            "method": request.method,
            "limit": config.max_requests,
            "window_s": config.window_seconds,
            "retry_after_s": retry_after_seconds(result),
            "blocked": result.retry_after is not None,
        },
    )


async def enforce_strict_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the strict policy to sensitive endpoints.

    Uses a separate key namespace so strict accounting never consumes the
    caller's main budget.

    Raises:
        RateLimitExceededError: When the strict quota is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter(request)
    key = STRICT_KEY_PREFIX + client_key_for(request)
    overrides = strict_overrides()
    config = RateLimitConfig(**overrides)

    result = limiter.consume(key, overrides)
    if result.allowed:
        return

    log_rate_limit_exceeded(key, result, config, request)
    raise build_rate_limit_error(
        result, config, include_headers=settings.app.rate_limit_include_headers
    )
