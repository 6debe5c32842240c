"""Named rate limit registry.

Resolves a limit name to a LimitDefinition:
1. Override loaded from RATE_LIMIT_DEFAULTS_JSON (e.g. {"contact": {"quota": 3, "per": 3600}})
2. Built-in default from BUILTIN_LIMITS
3. Fallback (quota=5, per_seconds=60)

Clamps: quota >= 1, per_seconds in [1, 86400].
"""
from __future__ import annotations

import logging
import os
from json import JSONDecodeError, loads
from typing import Any, Mapping, TypedDict

from . import metrics as metrics_mod

log = logging.getLogger(__name__)


class LimitDefinition(TypedDict):
    quota: int
    per_seconds: int


BUILTIN_LIMITS: dict[str, LimitDefinition] = {
    "contact": {"quota": 5, "per_seconds": 3600},
    "newsletter_subscribe": {"quota": 5, "per_seconds": 600},
    "register": {"quota": 10, "per_seconds": 3600},
    "forgot_password": {"quota": 5, "per_seconds": 3600},
    "resend_verification": {"quota": 5, "per_seconds": 3600},
    "search_suggestions": {"quota": 60, "per_seconds": 60},
    "likes": {"quota": 30, "per_seconds": 60},
}

_FALLBACK: LimitDefinition = {"quota": 5, "per_seconds": 60}
_MAX_WINDOW = 86400

_overrides: dict[str, LimitDefinition] = {}


def _clamp(q: Any, p: Any) -> LimitDefinition:
    try:
        quota = int(q)
    except (TypeError, ValueError):
        quota = _FALLBACK["quota"]
    try:
        per = int(p)
    except (TypeError, ValueError):
        per = _FALLBACK["per_seconds"]
    return {"quota": max(1, quota), "per_seconds": min(max(1, per), _MAX_WINDOW)}


def parse_limits(raw: str | Mapping[str, Any]) -> dict[str, LimitDefinition]:
    if isinstance(raw, str):
        try:
            data = loads(raw or "{}")
        except JSONDecodeError:
            log.warning("Ignoring malformed rate limit JSON")
            return {}
    else:
        data = dict(raw)
    out: dict[str, LimitDefinition] = {}
    for name, v in data.items():
        if isinstance(v, Mapping):
            out[name] = _clamp(v.get("quota"), v.get("per") or v.get("per_seconds"))
    return out


def refresh(raw: str | Mapping[str, Any] | None = None) -> None:
    if raw is None:
        raw = os.getenv("RATE_LIMIT_DEFAULTS_JSON", "")
    _overrides.clear()
    _overrides.update(parse_limits(raw))


def get_limit(name: str) -> tuple[LimitDefinition, str]:
    if name in _overrides:
        source = "override"
        ld = _overrides[name]
    elif name in BUILTIN_LIMITS:
        source = "builtin"
        ld = BUILTIN_LIMITS[name]
    else:
        source = "fallback"
        ld = _FALLBACK
    metrics_mod.increment("rate_limit.lookup", {"name": name, "source": source})
    return ld, source


__all__ = [
    "LimitDefinition",
    "BUILTIN_LIMITS",
    "parse_limits",
    "get_limit",
    "refresh",
]
