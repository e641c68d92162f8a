"""Application factory for the FastAPI app.

Centralizes app construction (logging, limiter ownership, middleware,
handlers, routers) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import AsyncIterator

from fastapi import FastAPI

from luminal.api.routes import health_router, rate_limit_router
from luminal.core.config import settings
from luminal.core.exception_handlers import setup_exception_handlers
from luminal.core.logging import configure_logging
from luminal.core.middleware import rate_limit_middleware, request_id_middleware
from luminal.core.rate_limit import build_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Stop the sweep thread so embedded servers and tests exit cleanly
    app.state.rate_limiter.close()
    logger.info("rate_limiter.closed", extra={"stats": asdict(app.state.rate_limiter.get_stats())})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Each call builds its own limiter, so separate apps never share quota.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    configure_logging(settings.log, debug=settings.app.debug)

    app = FastAPI(
        title="Genesis Luminal API",
        description=(
            "Per-client sliding-window rate limiting with cooldown blocking. "
            "Rejected requests receive HTTP 429 with Retry-After."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )
    app.state.rate_limiter = build_rate_limiter(settings.app)

    # Registered last, runs first: request ids cover 429 responses too
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    return app
