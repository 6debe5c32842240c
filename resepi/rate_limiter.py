"""Fixed-window request quotas.

RATE_LIMIT_BACKEND picks the store:

- ``noop`` (default): everything is allowed; local development and most tests.
- ``memory``: per-process counters; a single gunicorn worker only.
- ``redis``: shared INCR/EXPIRE counters at REDIS_URL, keys prefixed with RATE_LIMIT_PREFIX.

Views normally go through ``http_limits.limit``; ``enforce`` is the same check for
code paths that are not a whole view.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Protocol, runtime_checkable

from .metrics import increment as metrics_increment

log = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_PREFIX = "resepi:rl:"


class RateLimitError(Exception):
    """Quota exhausted. Rendered as 429 with Retry-After by the error handlers."""

    def __init__(self, message: str, retry_after: int, limit: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit


@runtime_checkable
class RateLimiter(Protocol):
    def allow(self, key: str, quota: int, per_seconds: int) -> bool: ...  # pragma: no cover
    def retry_after(self, key: str, per_seconds: int) -> int: ...  # pragma: no cover


def window_start(epoch: float | None = None, size: int = 60) -> int:
    """First epoch second of the window that ``epoch`` (default: now) falls in."""
    e = int(epoch if epoch is not None else time.time())
    return e - (e % size)


class NoopRateLimiter:
    def allow(self, key: str, quota: int, per_seconds: int) -> bool:
        return True

    def retry_after(self, key: str, per_seconds: int) -> int:
        return 0


class MemoryRateLimiter:
    def __init__(self) -> None:
        self._windows: dict[str, tuple[int, int]] = {}  # key -> (window start, hits)

    def allow(self, key: str, quota: int, per_seconds: int) -> bool:
        current = window_start(size=per_seconds)
        start, hits = self._windows.get(key, (current, 0))
        hits = hits + 1 if start == current else 1
        self._windows[key] = (current, hits)
        return hits <= quota

    def retry_after(self, key: str, per_seconds: int) -> int:
        if key not in self._windows:
            return 0
        start, _hits = self._windows[key]
        return max(0, start + per_seconds - int(time.time()))


def _build() -> RateLimiter:
    backend = (os.getenv("RATE_LIMIT_BACKEND") or "noop").strip().lower()
    if backend == "memory":
        return MemoryRateLimiter()
    if backend == "redis":
        from .rate_limiter_redis import RedisRateLimiter

        return RedisRateLimiter(
            os.getenv("REDIS_URL") or DEFAULT_REDIS_URL, os.getenv("RATE_LIMIT_PREFIX", DEFAULT_PREFIX)
        )
    if backend != "noop":
        log.warning("Unknown RATE_LIMIT_BACKEND=%s; requests are not limited", backend)
    return NoopRateLimiter()


_instance: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    global _instance
    if _instance is None:
        _instance = _build()
    return _instance


def enforce(name: str, key: str, quota: int, per_seconds: int) -> None:
    """Count one hit for ``name``/``key`` and raise RateLimitError once over quota."""
    logical_key = f"{name}:{key}"
    rl = get_rate_limiter()
    allowed = rl.allow(logical_key, quota=quota, per_seconds=per_seconds)
    metrics_increment(
        "rate_limit.hit", {"name": name, "outcome": "allow" if allowed else "block", "window": str(per_seconds)}
    )
    if not allowed:
        raise RateLimitError(
            f"Rate limit exceeded for {name}",
            retry_after=rl.retry_after(logical_key, per_seconds=per_seconds),
            limit=name,
        )


def _test_reset() -> None:
    """Drop the cached limiter so the next call re-reads RATE_LIMIT_BACKEND."""
    global _instance
    _instance = None


__all__ = [
    "RateLimiter",
    "RateLimitError",
    "NoopRateLimiter",
    "MemoryRateLimiter",
    "enforce",
    "get_rate_limiter",
    "window_start",
]
