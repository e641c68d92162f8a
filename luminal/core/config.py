"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Production may inject everything via env vars only
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    BaseSettings reads its fields from the environment; static type checkers
    still treat them as constructor arguments, hence the ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def parse_path_list(paths: str | None) -> tuple[str, ...]:
    """Parse a comma-separated list of path prefixes.

    Examples:
        >>> parse_path_list("/health, /readiness,")
        ('/health', '/readiness')
        >>> parse_path_list(None)
        ()
    """
    if not paths:
        return ()
    return tuple(p.strip() for p in paths.split(",") if p.strip())


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode: DEBUG log level and FastAPI debug tracebacks",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated admin keys for X-Admin-Key; admin endpoints are disabled when unset",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting per client key",
    )
    rate_limit_max_requests: int = Field(
        100,
        description="Maximum number of accepted requests per sliding window",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        900,
        description="Sliding window length in seconds",
        ge=1,
    )
    rate_limit_block_duration_seconds: int = Field(
        900,
        description="Cooldown applied to a client once its quota is filled",
        ge=1,
    )
    rate_limit_identifier: str = Field(
        "default",
        description="Diagnostic label for the main rate limit policy",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        60.0,
        description="Seconds between sweeps that drop idle limiter entries",
        gt=0,
    )
    rate_limit_idle_ttl_seconds: int = Field(
        3600,
        description="Entries without requests in this horizon are swept",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    rate_limit_exclude_paths: str = Field(
        "/health,/liveness,/readiness",
        description="Comma-separated path prefixes exempt from rate limiting",
    )
    rate_limit_fail_open: bool = Field(
        True,
        description="Let requests through when the limiter itself fails",
    )
    rate_limit_trust_proxy_headers: bool = Field(
        True,
        description="Derive the client IP from X-Forwarded-For / X-Real-IP",
    )

    strict_rate_limit_max_requests: int = Field(
        10,
        description="Maximum requests per window for sensitive endpoints",
        ge=1,
    )
    strict_rate_limit_window_seconds: int = Field(
        60,
        description="Window length for sensitive endpoints",
        ge=1,
    )
    strict_rate_limit_block_duration_seconds: int = Field(
        300,
        description="Cooldown for sensitive endpoints",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    @property
    def excluded_paths(self) -> tuple[str, ...]:
        return parse_path_list(self.rate_limit_exclude_paths)


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and return the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
