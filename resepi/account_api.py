"""JSON endpoints for the signed-in user's own account and saved recipes."""
from __future__ import annotations

from flask import Blueprint, jsonify, request

from .account_service import change_password, update_notifications, update_profile
from .app_authz import current_user, require_active_user
from .db import get_session
from .errors import ValidationError
from .saved_service import list_saved, save_recipe, serialize_saved, unsave, update_notes

bp = Blueprint("account_api", __name__, url_prefix="/api/account")


def _serialize_me(user) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "bio": user.bio,
        "image": user.image,
        "role": user.role,
        "emailVerified": user.email_verified.isoformat() if user.email_verified else None,
        "subscribeCommentReply": user.subscribe_comment_reply,
        "subscribeNewsletter": user.subscribe_newsletter,
    }


@bp.get("/me")
def me():
    db = get_session()
    try:
        return jsonify({"ok": True, "user": _serialize_me(current_user(db))})
    finally:
        db.close()


@bp.put("/profile")
def put_profile():
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        user = require_active_user(db)
        update_profile(db, user, data.get("name"), data.get("username"), data.get("bio"))
        return jsonify({"ok": True, "user": _serialize_me(user)})
    finally:
        db.close()


@bp.post("/password")
def post_password():
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        user = current_user(db)
        change_password(
            db, user, data.get("currentPassword"), data.get("newPassword"), data.get("confirmPassword")
        )
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.put("/notifications")
def put_notifications():
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        user = current_user(db)
        update_notifications(
            db, user, bool(data.get("subscribeCommentReply")), bool(data.get("subscribeNewsletter"))
        )
        return jsonify({"ok": True, "user": _serialize_me(user)})
    finally:
        db.close()


# ---- Saved recipes ----

@bp.get("/saved")
def get_saved():
    db = get_session()
    try:
        user = current_user(db)
        return jsonify({"ok": True, "items": [serialize_saved(s) for s in list_saved(db, user.id)]})
    finally:
        db.close()


@bp.post("/saved")
def post_saved():
    data = request.get_json(silent=True) or {}
    recipe_id = data.get("recipeId")
    if not isinstance(recipe_id, int):
        raise ValidationError([{"field": "recipeId", "message": "recipeId required"}])
    db = get_session()
    try:
        user = current_user(db)
        row = save_recipe(db, user.id, recipe_id)
        return jsonify({"ok": True, "saved": serialize_saved(row)}), 201
    finally:
        db.close()


@bp.patch("/saved/<int:saved_id>")
def patch_saved(saved_id: int):
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        user = current_user(db)
        row = update_notes(db, user.id, saved_id, data.get("notes"))
        return jsonify({"ok": True, "saved": serialize_saved(row)})
    finally:
        db.close()


@bp.delete("/saved/<int:saved_id>")
def delete_saved(saved_id: int):
    db = get_session()
    try:
        user = current_user(db)
        unsave(db, user.id, saved_id)
        return jsonify({"ok": True})
    finally:
        db.close()
