"""HTTP middleware: request correlation and per-client rate limiting.

Usage (the last registered middleware runs first):
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from luminal.adapters.rate_limit.base import key_fingerprint
from luminal.core.config import settings
from luminal.core.exception_handlers import app_error_response
from luminal.core.logging import clear_request_id, set_request_id
from luminal.core.rate_limit import (
    build_rate_limit_error,
    build_rate_limit_headers,
    client_key_for,
    get_rate_limiter,
    log_rate_limit_exceeded,
)

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Accept or generate a request id and echo it on the response.

    The id is kept in contextvars for the duration of the request so every
    log record emitted while handling it is correlated. The response also
    reports the handling time in ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def is_excluded_path(path: str, prefixes: tuple[str, ...]) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Consume one unit of the caller's budget per request.

    Excluded paths (health checks by default) bypass the limiter. A rejected
    request is answered with 429 without reaching the route. If the limiter
    itself fails, the request is let through when fail-open is enabled.
    """

    app_cfg = settings.app
    if not app_cfg.rate_limit_enabled or is_excluded_path(
        request.url.path, app_cfg.excluded_paths
    ):
        return await call_next(request)

    limiter = get_rate_limiter(request)
    key = client_key_for(request)

    try:
        result = limiter.consume(key)
    except Exception:
        if not app_cfg.rate_limit_fail_open:
            raise
        logger.exception(
            "rate_limit.fail_open",
            extra={"key_hash": key_fingerprint(key), "path": request.url.path},
        )
        return await call_next(request)

    config = limiter.default_config
    if not result.allowed:
        log_rate_limit_exceeded(key, result, config, request)
        error = build_rate_limit_error(
            result, config, include_headers=app_cfg.rate_limit_include_headers
        )
        return app_error_response(error)

    response = await call_next(request)
    if app_cfg.rate_limit_include_headers:
        # A stricter policy rejecting further down keeps its own headers
        for name, value in build_rate_limit_headers(result, config).items():
            response.headers.setdefault(name, value)
    return response
