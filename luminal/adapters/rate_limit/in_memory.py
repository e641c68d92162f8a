"""In-memory sliding-window rate limiter with cooldown blocking.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a single lock guards the key map, the counters and the sweep.
- A key that fills its quota is blocked for ``block_duration_seconds``. The
  block is cleared lazily by the next call that observes it has expired.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from luminal.adapters.rate_limit.base import (
    DEFAULT_RATE_LIMIT_CONFIG,
    HEALTH_CHECK_KEY,
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitOverrides,
    RateLimitResult,
    RateLimitStats,
    key_fingerprint,
    merge_config,
)

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_IDLE_TTL_SECONDS = 3600


@dataclass
class _Entry:
    requests: list[float] = field(default_factory=list)
    blocked: bool = False
    block_until: float | None = None

    def clear_block(self) -> None:
        self.blocked = False
        self.block_until = None


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping per-key request timestamps in a sliding window.

    Admission is decided on the state *before* the current request is
    counted. The request that fills the last slot is still allowed, and it
    puts the key into a cooldown that rejects every following request until
    the block expires.

    Important:
        Expired blocks are only cleared when the key is queried again. A key
        with no further traffic stays marked as blocked until the sweep
        removes it.
    """

    def __init__(
        self,
        default_config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float | None = DEFAULT_SWEEP_INTERVAL_SECONDS,
        idle_ttl_seconds: float = DEFAULT_IDLE_TTL_SECONDS,
    ) -> None:
        """Initialize the limiter and start the background sweep.

        Args:
            default_config: Policy used when a call supplies no overrides.
            clock: Time source returning UNIX time in seconds.
            sweep_interval_seconds: Seconds between sweeps; ``None`` disables
                the background thread (``cleanup()`` can still be called).
            idle_ttl_seconds: Entries without a request in this horizon and
                without an active block are dropped by the sweep.

        Raises:
            ValueError: If the sweep interval or idle TTL are invalid.
        """
        if sweep_interval_seconds is not None and sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")
        if idle_ttl_seconds <= 0:
            raise ValueError("idle_ttl_seconds must be > 0")

        self._config = default_config or DEFAULT_RATE_LIMIT_CONFIG
        self._clock = clock
        self._idle_ttl = idle_ttl_seconds
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}
        self._total_requests = 0
        self._blocked_requests = 0

        self._sweep_interval = sweep_interval_seconds
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None
        if sweep_interval_seconds is not None:
            self._sweeper = threading.Thread(
                target=self._run_sweeper,
                name="rate-limiter-sweep",
                daemon=True,
            )
            self._sweeper.start()

        logger.info(
            "rate_limiter.initialized",
            extra={
                "policy": self._config.identifier,
                "max_requests": self._config.max_requests,
                "window_s": self._config.window_seconds,
                "block_s": self._config.block_duration_seconds,
                "sweep_interval_s": sweep_interval_seconds,
            },
        )

    @property
    def default_config(self) -> RateLimitConfig:
        return self._config

    def _get_or_create_entry(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        return entry

    def _check_locked(self, key: str, config: RateLimitConfig, now: float) -> RateLimitResult:
        """Admission test for ``key``. Caller must hold the lock."""
        entry = self._get_or_create_entry(key)

        # Cooldown takes priority over the window.
        if entry.blocked and entry.block_until is not None and now < entry.block_until:
            retry_after = math.ceil(entry.block_until - now)
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=retry_after,
                retry_after=retry_after,
            )

        window_start = now - config.window_seconds
        entry.requests = [ts for ts in entry.requests if ts > window_start]

        if entry.blocked:
            entry.clear_block()

        current = len(entry.requests)
        oldest = entry.requests[0] if entry.requests else now
        reset_time = max(0, math.ceil(config.window_seconds - (now - oldest)))

        return RateLimitResult(
            allowed=current < config.max_requests,
            remaining=max(0, config.max_requests - current),
            reset_time=reset_time,
        )

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")

    def check_limit(
        self, key: str, overrides: RateLimitOverrides | None = None
    ) -> RateLimitResult:
        """Report the admission decision for ``key`` without recording it.

        Args:
            key: Unique identifier for rate limiting.
            overrides: Optional partial policy merged over the default.

        Returns:
            RateLimitResult for the current state of the key.

        Raises:
            ValueError: If key is empty or overrides are invalid.
        """
        self._validate_key(key)
        config = merge_config(self._config, overrides)
        with self._lock:
            return self._check_locked(key, config, self._clock())

    def consume(
        self, key: str, overrides: RateLimitOverrides | None = None
    ) -> RateLimitResult:
        """Consume one request from the budget of ``key``.

        A rejected attempt is counted in the stats but never recorded as a
        request, so it does not extend the window.

        Raises:
            ValueError: If key is empty or overrides are invalid.
        """
        self._validate_key(key)
        config = merge_config(self._config, overrides)
        with self._lock:
            # Read under the lock so each key's timestamps stay ordered
            now = self._clock()
            self._total_requests += 1
            checked = self._check_locked(key, config, now)
            if not checked.allowed:
                self._blocked_requests += 1
                return checked

            entry = self._entries[key]
            entry.requests.append(now)

            if len(entry.requests) >= config.max_requests:
                entry.blocked = True
                entry.block_until = now + config.block_duration_seconds
                logger.debug(
                    "rate_limit.blocked",
                    extra={
                        "key_hash": key_fingerprint(key),
                        "policy": config.identifier,
                        "requests": len(entry.requests),
                        "max_requests": config.max_requests,
                        "block_s": config.block_duration_seconds,
                    },
                )

            return RateLimitResult(
                allowed=True,
                remaining=max(0, config.max_requests - len(entry.requests)),
                reset_time=checked.reset_time,
            )

    def reset(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.requests = []
            entry.clear_block()
        logger.debug("rate_limit.reset", extra={"key_hash": key_fingerprint(key)})

    def get_stats(self) -> RateLimitStats:
        with self._lock:
            return RateLimitStats(
                total_requests=self._total_requests,
                blocked_requests=self._blocked_requests,
                active_keys=len(self._entries),
            )

    def is_healthy(self) -> bool:
        """Self-check using a reserved sentinel key."""
        try:
            result = self.check_limit(HEALTH_CHECK_KEY)
            return isinstance(result.allowed, bool)
        except Exception:
            logger.exception("rate_limiter.health_check_failed")
            return False

    def cleanup(self) -> int:
        """Remove idle, unblocked entries.

        An entry survives if any of its requests is newer than the idle
        horizon, or if its block is still active.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            horizon = now - self._idle_ttl
            stale = [
                key
                for key, entry in self._entries.items()
                if not any(ts > horizon for ts in entry.requests)
                and not (
                    entry.blocked
                    and entry.block_until is not None
                    and now < entry.block_until
                )
            ]
            for key in stale:
                del self._entries[key]
            remaining = len(self._entries)

        if stale:
            logger.debug(
                "rate_limiter.sweep",
                extra={"removed": len(stale), "active_keys": remaining},
            )
        return len(stale)

    def _run_sweeper(self) -> None:
        assert self._sweep_interval is not None
        while not self._stop_event.wait(self._sweep_interval):
            try:
                self.cleanup()
            except Exception:
                logger.exception("rate_limiter.sweep_failed")

    def close(self) -> None:
        """Stop the background sweep and wait for it to exit."""
        self._stop_event.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper.is_alive() and sweeper is not threading.current_thread():
            sweeper.join(timeout=5)
        self._sweeper = None
