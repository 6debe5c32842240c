from __future__ import annotations

from flask import Blueprint, jsonify, request, session

from .app_authz import require_roles
from .comments_service import bulk_moderate, delete_comment, list_for_moderation
from .db import get_session

bp = Blueprint("moderation_api", __name__, url_prefix="/api/moderation")


@bp.get("/comments")
@require_roles("admin")
def list_comments():
    db = get_session()
    try:
        items = list_for_moderation(db, request.args.get("status") or "ALL")
        return jsonify({"ok": True, "items": items, "total": len(items)})
    finally:
        db.close()


@bp.delete("/comments/<int:comment_id>")
@require_roles("admin")
def remove_comment(comment_id: int):
    db = get_session()
    try:
        delete_comment(db, comment_id, actor_id=session.get("user_id"))
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.post("/comments/bulk")
@require_roles("admin")
def bulk():
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        count = bulk_moderate(db, data.get("commentIds"), data.get("action"), actor_id=session.get("user_id"))
        return jsonify({"ok": True, "count": count})
    finally:
        db.close()
