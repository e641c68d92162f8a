"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that loads settings.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from luminal.core.app_factory import create_app  # noqa: E402
from luminal.core.config import settings  # noqa: E402


@pytest.fixture
def make_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[..., TestClient]]:
    """Build an isolated app (own limiter) with app settings overridden.

    Usage:
        client = make_client(rate_limit_max_requests=3)
    """

    apps = []

    def _make(*, raise_server_exceptions: bool = True, **overrides) -> TestClient:
        for name, value in overrides.items():
            monkeypatch.setattr(settings.app, name, value)
        app = create_app()
        apps.append(app)
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    yield _make

    for app in apps:
        app.state.rate_limiter.close()
