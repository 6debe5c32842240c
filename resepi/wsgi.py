"""Gunicorn entry point: ``gunicorn resepi.wsgi:app``.

WhiteNoise serves the files found under /static at start-up. Image variants uploaded
later fall through to Flask's own static route until the next restart.
"""
from __future__ import annotations

import os

from whitenoise import WhiteNoise

from .app_factory import create_app

STATIC_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir, "static"))

flask_app = create_app()
app = WhiteNoise(
    flask_app,
    root=STATIC_ROOT,
    prefix="static/",
    max_age=60 * 60 * 24 * 7,
    autorefresh=os.getenv("WHITENOISE_AUTOREFRESH", "0") == "1",
)
