"""Role adapter.

CanonicalRole: roles used internally for authorization logic
AppRole: upper-case labels written by the seed data and older exports
RoleLike: union accepted at API boundary; converted via to_canonical()
"""

from __future__ import annotations

from typing import Literal

CanonicalRole = Literal["admin", "user"]
AppRole = Literal["ADMIN", "USER"]
RoleLike = CanonicalRole | AppRole

ROLE_MAP: dict[AppRole, CanonicalRole] = {
    "ADMIN": "admin",
    "USER": "user",
}


def to_canonical(role: RoleLike) -> CanonicalRole:
    if role in ROLE_MAP:  # type: ignore[operator]
        return ROLE_MAP[role]  # type: ignore[index]
    return role  # type: ignore[return-value]


def is_admin(role: str | None) -> bool:
    return bool(role) and to_canonical(role) == "admin"  # type: ignore[arg-type]


__all__ = [
    "CanonicalRole",
    "AppRole",
    "RoleLike",
    "ROLE_MAP",
    "to_canonical",
    "is_admin",
]
