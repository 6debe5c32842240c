"""Signed-cookie login state.

The Flask session carries the signed-in user's id, role and display name. The name is
only used by the site header; authorization always reloads the user row.
"""
from __future__ import annotations

from typing import TypedDict, cast

from flask import session as flask_session

SESSION_KEYS = ("user_id", "role", "user_name")


class SessionData(TypedDict):
    user_id: int
    role: str


def persist_login(sess, user_id: int, role: str, display_name: str | None = None) -> None:
    """Start a fresh login, dropping whatever the previous visitor left behind."""
    clear_login(sess)
    sess["user_id"] = int(user_id)
    sess["role"] = role
    if display_name:
        sess["user_name"] = display_name
    sess.permanent = True


def clear_login(sess=flask_session) -> None:
    for key in SESSION_KEYS:
        sess.pop(key, None)


def get_session(sess=flask_session) -> SessionData | None:
    if not sess.get("user_id") or not sess.get("role"):
        return None
    return {"user_id": int(sess["user_id"]), "role": cast(str, sess["role"])}


def require_session(sess=flask_session) -> SessionData:
    data = get_session(sess)
    if data is None:
        raise SessionError()
    return data


class SessionError(Exception):
    """No signed-in user. Rendered as 401 for APIs and a sign-in redirect for pages."""

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


__all__ = [
    "SessionData",
    "persist_login",
    "clear_login",
    "get_session",
    "require_session",
    "SessionError",
]
