"""Audit event recorder for admin and security-sensitive actions.

Events live in a process-local ring buffer and are mirrored as OpenTelemetry
spans (no-op unless an SDK is configured). The admin dashboard lists the
most recent entries.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any

from opentelemetry import trace

_AUDIT_BUFFER: list[dict[str, Any]] = []
_MAX_BUFFER = 500


@dataclass
class AuditEvent:
    ts: int
    action: str
    actor_user_id: int | None = None
    meta: dict[str, Any] | None = None


def record_audit_event(action: str, actor_user_id: int | None = None, **meta: Any) -> AuditEvent:
    ev = AuditEvent(int(time.time()), action, actor_user_id, meta or None)
    if len(_AUDIT_BUFFER) >= _MAX_BUFFER:
        del _AUDIT_BUFFER[0: max(50, _MAX_BUFFER // 10)]  # drop oldest slice
    _AUDIT_BUFFER.append(asdict(ev))
    tracer = trace.get_tracer("resepi.audit")
    with tracer.start_as_current_span(f"audit.{action}") as span:
        if actor_user_id is not None:
            span.set_attribute("actor_user_id", actor_user_id)
        for k, v in meta.items():
            span.set_attribute(f"meta.{k}", str(v))
    return ev


def list_audit_events(action: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
    events = [e for e in _AUDIT_BUFFER if action is None or e["action"] == action]
    return list(reversed(events[-limit:]))


def clear_audit_events() -> None:
    _AUDIT_BUFFER.clear()
