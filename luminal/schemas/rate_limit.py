"""Pydantic schemas for rate limit diagnostics."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class RateLimitStatsResponse(BaseModel):
    """Process-lifetime limiter counters."""

    total_requests: int = Field(
        ..., ge=0, description="Requests accounted by the limiter since startup."
    )
    blocked_requests: int = Field(
        ..., ge=0, description="Requests rejected since startup."
    )
    active_keys: int = Field(
        ..., ge=0, description="Client keys currently tracked in memory."
    )


class RateLimitStatusResponse(BaseModel):
    """Current admission state of the calling client (nothing is consumed)."""

    allowed: bool = Field(..., description="Whether a new request would be admitted.")
    limit: int = Field(..., ge=1, description="Maximum requests per window.")
    remaining: int = Field(..., ge=0, description="Quota left in the current window.")
    reset_time: int = Field(
        ...,
        ge=0,
        description="Seconds until the oldest counted request leaves the window, "
        "or until an active block clears.",
    )
    retry_after: int | None = Field(
        default=None,
        description="Seconds to wait; set only while the client is blocked.",
    )
    window_seconds: int = Field(..., ge=1, description="Sliding window length.")
    policy: str = Field(..., description="Policy identifier.")


class RateLimitResetRequest(BaseModel):
    client_ip: str = Field(
        ..., min_length=1, description="Address of the client whose window is cleared."
    )


class RateLimitResetResponse(BaseModel):
    reset: bool = True
    key_hash: str = Field(..., description="Fingerprint of the client key that was reset.")


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    rate_limiter: Literal["ok", "unavailable"]
