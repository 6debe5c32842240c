"""Authorization helpers.

`require_roles` raises AuthzError(403) carrying the canonical required role and
SessionError(401) when nobody is signed in; the central handlers map both.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar, cast

from sqlalchemy.orm import Session

from .app_sessions import SessionError, get_session, require_session
from .models import User
from .roles import CanonicalRole, RoleLike, to_canonical

P = ParamSpec("P")
R = TypeVar("R")


class AuthzError(Exception):
    """Signals an authorization (403) failure to be caught by centralized handlers."""

    required: CanonicalRole | None

    def __init__(self, message: str = "forbidden", required: CanonicalRole | None = None):
        super().__init__(message)
        self.required = required


def require_roles(*roles: RoleLike) -> Callable[[Callable[P, R]], Callable[P, R]]:
    canonical_allowed = [to_canonical(r) for r in roles]

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs):  # type: ignore[no-untyped-def]
            sess = get_session()
            if sess is None:
                raise SessionError("authentication required")
            role_value = to_canonical(cast(RoleLike, sess["role"]))
            if role_value not in canonical_allowed:
                req = canonical_allowed[0] if canonical_allowed else None
                raise AuthzError("forbidden", required=req)
            return fn(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def current_user(db: Session) -> User:
    """Load the signed-in user row; a session pointing at a deleted user is treated as signed out."""
    sess = require_session()
    user = db.get(User, sess["user_id"])
    if user is None:
        raise SessionError("authentication required")
    return user


def require_active_user(db: Session) -> User:
    user = current_user(db)
    if user.status == "SUSPENDED":
        raise AuthzError("account_suspended")
    return user


__all__ = [
    "require_roles",
    "current_user",
    "require_active_user",
    "AuthzError",
]
