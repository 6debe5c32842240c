"""Lightweight application telemetry helpers.

Provides an OpenTelemetry counter ``resepi.events_total`` capturing domain
events (comment posted, recipe liked, draft generated ...). Without an SDK
configured the API hands back a no-op meter, so local runs cost nothing.
"""
from __future__ import annotations

from collections import Counter

from opentelemetry.metrics import get_meter

_METER = get_meter("resepi.app")
_EVENTS = _METER.create_counter(
    name="resepi.events_total",
    description="Domain events (labels: action, recipe)",
)

# Local in-process event counts (visible without a metrics backend)
LOCAL_EVENTS: Counter[str] = Counter()


def track_event(action: str, *, recipe: str | None = None) -> None:
    """Record a domain event.

    Parameters
    ----------
    action: str
        The event action key (e.g., "comment_created").
    recipe: Optional[str]
        Recipe slug or id if relevant.
    """
    LOCAL_EVENTS[action] += 1
    labels: dict[str, str] = {"action": action}
    if recipe:
        labels["recipe"] = recipe
    _EVENTS.add(1, labels)


__all__ = ["track_event", "LOCAL_EVENTS"]
