"""HTTP rate limiting decorator.

Add @limit to a view to enforce fixed-window quotas. Quotas not given
explicitly are resolved through limit_registry.
"""
from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import request, session

from .limit_registry import get_limit
from .rate_limiter import enforce

LimiterKeyFunc = Callable[[], str]


def client_ip_key() -> str:
    return request.remote_addr or "na"


def user_or_ip_key() -> str:
    uid = session.get("user_id")
    return f"u{uid}" if uid else f"ip:{client_ip_key()}"


def limit(
    name: str,
    *,
    quota: int | None = None,
    per_seconds: int | None = None,
    key_func: LimiterKeyFunc = client_ip_key,
):

    def decorator(fn: Callable[..., Any]):
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any):
            q = quota
            p = per_seconds
            if q is None or p is None:
                ld, _src = get_limit(name)
                q = ld["quota"] if q is None else q
                p = ld["per_seconds"] if p is None else p
            enforce(name, key_func(), q, p)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


__all__ = ["limit", "client_ip_key", "user_or_ip_key"]
