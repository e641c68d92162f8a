"""Tests for global exception handlers.

Validates that domain errors map to the right status codes in the standard
error envelope and that unexpected errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from luminal.adapters.rate_limit.base import RateLimitConfig, RateLimitResult
from luminal.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededError,
    ValidationAppError,
)
from luminal.core.exception_handlers import general_exception_handler, setup_exception_handlers
from luminal.core.rate_limit import build_rate_limit_error


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_authentication_error_returns_403(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-auth")
        async def test_endpoint():
            raise AuthenticationAppError(code="invalid_admin_key", message="Invalid or missing admin key")

        response = client.get("/test-auth")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "invalid_admin_key"

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_rate_limit_config",
                message="max_requests must be >= 1",
                details={"hint": "Set APP_RATE_LIMIT_MAX_REQUESTS to a positive integer"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_rate_limit_config"
        assert error["message"] == "max_requests must be >= 1"
        assert error["details"]["hint"].startswith("Set APP_")
        assert "request_id" in error

    def test_rate_limit_error_returns_429_with_headers(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-throttled")
        async def test_endpoint():
            raise build_rate_limit_error(
                RateLimitResult(allowed=False, remaining=0, reset_time=42, retry_after=42),
                RateLimitConfig(max_requests=7, window_seconds=60),
                include_headers=True,
            )

        response = client.get("/test-throttled")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "7"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        details = response.json()["error"]["details"]
        assert details["retry_after"] == 42
        assert details["window_seconds"] == 60

    def test_window_full_rejection_falls_back_to_reset_time(self):
        error = build_rate_limit_error(
            RateLimitResult(allowed=False, remaining=0, reset_time=13),
            RateLimitConfig(),
            include_headers=False,
        )

        assert isinstance(error, RateLimitExceededError)
        assert error.headers == {"Retry-After": "13"}
        assert error.details["retry_after"] == 13

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise AppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers
        assert AppError in app_with_handlers.exception_handlers

    def test_general_exception_handler_hides_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("limiter state corrupted for ip:203.0.113.7")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "203.0.113.7" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
