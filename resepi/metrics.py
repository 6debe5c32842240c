"""Pluggable counters. Backends: noop (default) and log."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

logger = logging.getLogger("resepi.metrics")


class Metrics(Protocol):
    def increment(self, name: str, tags: Mapping[str, str] | None = None) -> None: ...  # pragma: no cover - interface only


class _NoopMetrics:
    def increment(self, name: str, tags: Mapping[str, str] | None = None) -> None:  # pragma: no cover - noop
        return


class LoggingMetrics:
    def increment(self, name: str, tags: Mapping[str, str] | None = None) -> None:
        # Structured-ish log for easy grep/ingest later
        logger.info("metric name=%s tags=%s", name, dict(sorted((tags or {}).items())))


_metrics: Metrics = _NoopMetrics()


def set_metrics(m: Metrics) -> None:
    global _metrics
    _metrics = m


def configure_metrics(backend: str | None) -> str:
    """Install the backend named by METRICS_BACKEND; returns the name actually used."""
    if (backend or "").lower() == "log":
        set_metrics(LoggingMetrics())
        return "log"
    set_metrics(_NoopMetrics())
    return "noop"


def increment(name: str, tags: Mapping[str, str] | None = None) -> None:
    _metrics.increment(name, tags)
