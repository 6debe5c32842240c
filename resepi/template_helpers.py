"""Jinja globals and filters shared by every page."""
from __future__ import annotations

from datetime import datetime, timedelta

from flask import Flask

from .models import utcnow

DIFFICULTY_LABELS = {
    "EASY": "Mudah",
    "MEDIUM": "Sederhana",
    "HARD": "Sukar",
    "EXPERT": "Pakar",
}

SERVING_LABELS = {
    "PEOPLE": "orang",
    "SLICES": "keping",
    "PIECES": "biji",
    "PORTIONS": "hidangan",
    "BOWLS": "mangkuk",
    "GLASSES": "gelas",
}

MALAY_MONTHS = (
    "Januari",
    "Februari",
    "Mac",
    "April",
    "Mei",
    "Jun",
    "Julai",
    "Ogos",
    "September",
    "Oktober",
    "November",
    "Disember",
)


def is_older_than_one_week(dt: datetime | None, now: datetime | None = None) -> bool:
    """False for recipes created in the last 7 days; those get the "Baru" badge."""
    if dt is None:
        return True
    return (now or utcnow()) - dt > timedelta(days=7)


def format_minutes(minutes: int | None) -> str:
    if not minutes:
        return "-"
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours} jam {mins} minit"
    if hours:
        return f"{hours} jam"
    return f"{mins} minit"


def format_date(dt: datetime | str | None) -> str:
    if not dt:
        return ""
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt)
    return f"{dt.day} {MALAY_MONTHS[dt.month - 1]} {dt.year}"


def difficulty_label(value: str | None) -> str:
    return DIFFICULTY_LABELS.get(value or "", value or "")


def serving_label(value: str | None) -> str:
    return SERVING_LABELS.get(value or "", "")


def init_template_helpers(app: Flask) -> None:
    app.jinja_env.globals.update(is_older_than_one_week=is_older_than_one_week)
    app.jinja_env.filters["minutes"] = format_minutes
    app.jinja_env.filters["tarikh"] = format_date
    app.jinja_env.filters["difficulty"] = difficulty_label
    app.jinja_env.filters["serving"] = serving_label
