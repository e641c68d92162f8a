"""Rate limiter interfaces and value types.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the in-memory store can be swapped for a shared one later with minimal
changes.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields, replace
from typing import Mapping, TypedDict

HEALTH_CHECK_KEY = "__health_check__"


@dataclass(frozen=True)
class RateLimitConfig:
    """Fully-resolved rate limit policy.

    Attributes:
        max_requests: Maximum accepted requests per sliding window.
        window_seconds: Sliding window length in seconds.
        block_duration_seconds: Cooldown applied once the quota is filled.
        identifier: Diagnostic label for the policy (not part of the key).
    """

    max_requests: int = 100
    window_seconds: int = 900
    block_duration_seconds: int = 900
    identifier: str = "default"

    def __post_init__(self) -> None:
        for name in ("max_requests", "window_seconds", "block_duration_seconds"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
            if value < 1:
                raise ValueError(f"{name} must be >= 1")
        if not isinstance(self.identifier, str):
            raise ValueError("identifier must be a string")


class RateLimitOverrides(TypedDict, total=False):
    """Partial policy supplied per call and merged over the defaults."""

    max_requests: int
    window_seconds: int
    block_duration_seconds: int
    identifier: str


DEFAULT_RATE_LIMIT_CONFIG = RateLimitConfig()

_CONFIG_FIELDS = frozenset(f.name for f in fields(RateLimitConfig))


def merge_config(
    base: RateLimitConfig,
    overrides: Mapping[str, object] | None = None,
) -> RateLimitConfig:
    """Merge a partial policy over ``base``.

    Args:
        base: Fully-resolved default policy.
        overrides: Optional partial policy. ``None`` values are ignored.

    Returns:
        A new, validated RateLimitConfig.

    Raises:
        ValueError: If an override names an unknown field or yields an
            invalid policy.
    """

    if not overrides:
        return base

    unknown = set(overrides) - _CONFIG_FIELDS
    if unknown:
        raise ValueError(f"unknown rate limit config fields: {sorted(unknown)}")

    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return base
    return replace(base, **changes)


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        remaining: Quota left in the current window (0 when blocked).
        reset_time: Seconds until the oldest counted request leaves the
            window, or until the block clears.
        retry_after: Seconds to wait, set only when rejected by an active block.
    """

    allowed: bool
    remaining: int
    reset_time: int
    retry_after: int | None = None


@dataclass(frozen=True)
class RateLimitStats:
    """Process-lifetime diagnostic counters."""

    total_requests: int
    blocked_requests: int
    active_keys: int


def key_fingerprint(key: str) -> str:
    """Hash a limiter key for logging without exposing client identity."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @property
    @abstractmethod
    def default_config(self) -> RateLimitConfig:
        """Policy applied when a call supplies no overrides."""
        raise NotImplementedError

    @abstractmethod
    def check_limit(
        self, key: str, overrides: RateLimitOverrides | None = None
    ) -> RateLimitResult:
        """Report whether a request for ``key`` would be admitted.

        Does not record a request, but may prune expired timestamps and
        clear an expired block.
        """
        raise NotImplementedError

    @abstractmethod
    def consume(
        self, key: str, overrides: RateLimitOverrides | None = None
    ) -> RateLimitResult:
        """Account one request for ``key``.

        Args:
            key: Unique caller identifier (e.g., namespaced client IP).
            overrides: Optional partial policy for this call.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget all requests and any block for ``key``."""
        raise NotImplementedError

    @abstractmethod
    def get_stats(self) -> RateLimitStats:
        raise NotImplementedError

    @abstractmethod
    def is_healthy(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Drop idle entries and return how many were removed."""
        raise NotImplementedError

    def close(self) -> None:
        """Release background resources. Safe to call more than once."""

    def __enter__(self) -> AbstractRateLimiter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
