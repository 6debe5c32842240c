from __future__ import annotations

from flask import Blueprint, jsonify, session

from .app_authz import current_user
from .counters import like_recipe, like_status
from .db import get_session
from .http_limits import limit, user_or_ip_key
from .telemetry import track_event

bp = Blueprint("likes_api", __name__, url_prefix="/api/likes")


@bp.get("/<int:recipe_id>")
def get_likes(recipe_id: int):
    uid = session.get("user_id")
    db = get_session()
    try:
        return jsonify(like_status(db, recipe_id, int(uid) if uid else None))
    finally:
        db.close()


@bp.post("/<int:recipe_id>")
@limit("likes", key_func=user_or_ip_key)
def post_like(recipe_id: int):
    db = get_session()
    try:
        user = current_user(db)
        result = like_recipe(db, recipe_id, user.id)
        track_event("recipe_liked", recipe=str(recipe_id))
        return jsonify(result)
    finally:
        db.close()
