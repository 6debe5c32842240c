from __future__ import annotations

from typing import Any

from flask import Blueprint
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .db import get_session

bp = Blueprint("health_api", __name__)


@bp.get("/healthz")
def healthz() -> tuple[dict[str, Any], int]:
    # Minimal health endpoint for container orchestrators; 503 when the DB is unreachable
    db = get_session()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "db": "ok"}, 200
    except SQLAlchemyError:
        return {"status": "degraded", "db": "unavailable"}, 503
    finally:
        db.close()
