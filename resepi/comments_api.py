from __future__ import annotations

from flask import Blueprint, jsonify, request, session

from .app_authz import current_user
from .comments_service import create_comment, recipe_comments
from .db import get_session
from .errors import ValidationError
from .roles import is_admin

bp = Blueprint("comments_api", __name__, url_prefix="/api")


@bp.post("/comments")
def post_comment():
    data = request.get_json(silent=True) or {}
    recipe_id = data.get("recipeId")
    parent_id = data.get("parentId")
    if not isinstance(recipe_id, int):
        raise ValidationError([{"field": "recipeId", "message": "recipeId required"}])
    if parent_id is not None and not isinstance(parent_id, int):
        raise ValidationError([{"field": "parentId", "message": "parentId must be an integer"}])
    db = get_session()
    try:
        user = current_user(db)
        result = create_comment(db, user, recipe_id, data.get("content"), parent_id)
        return jsonify({"ok": True, **result}), 201
    finally:
        db.close()


@bp.get("/recipes/<int:recipe_id>/comments")
def get_comments(recipe_id: int):
    include_all = request.args.get("all") == "1" and is_admin(session.get("role"))
    db = get_session()
    try:
        return jsonify({"ok": True, "items": recipe_comments(db, recipe_id, include_all=include_all)})
    finally:
        db.close()
