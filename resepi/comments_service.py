"""Recipe comments: posting with spam screening, threaded reads and moderation."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .app_authz import AuthzError
from .audit_events import record_audit_event
from .errors import DomainError, NotFoundError, ValidationError
from .mailer import MailError, send_comment_reply_email
from .models import COMMENT_STATUSES, Comment, Recipe, User, utcnow
from .roles import is_admin
from .spam import check_spam
from .telemetry import track_event

log = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1000
RATE_LIMIT_COUNT = 3
RATE_LIMIT_WINDOW = 60  # seconds
REPLY_DEPTH = 2


def serialize_comment(c: Comment) -> dict[str, Any]:
    return {
        "id": c.id,
        "content": c.content,
        "status": c.status,
        "recipeId": c.recipe_id,
        "parentId": c.parent_id,
        "createdAt": c.created_at.isoformat() if c.created_at else None,
        "user": {
            "id": c.user.id,
            "name": c.user.display_name,
            "image": c.user.image,
        }
        if c.user
        else None,
    }


def _check_rate(db: Session, user_id: int) -> None:
    since = utcnow() - timedelta(seconds=RATE_LIMIT_WINDOW)
    recent = (
        db.query(func.count(Comment.id))
        .filter(Comment.user_id == user_id, Comment.created_at >= since)
        .scalar()
    )
    if recent >= RATE_LIMIT_COUNT:
        raise DomainError(429, "too_many_comments", "too_many_comments", retry_after=RATE_LIMIT_WINDOW)


def create_comment(
    db: Session, user: User, recipe_id: int, content: str | None, parent_id: int | None = None
) -> dict[str, Any]:
    text = (content or "").strip()
    if not text:
        raise ValidationError([{"field": "content", "message": "Komen tidak boleh kosong."}])
    if len(text) > MAX_CONTENT_LENGTH:
        raise ValidationError([{"field": "content", "message": "Komen terlalu panjang (maksimum 1000 aksara)."}])
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    if user.status == "SUSPENDED":
        raise AuthzError("account_suspended")
    _check_rate(db, user.id)

    parent: Comment | None = None
    if parent_id is not None:
        parent = db.get(Comment, parent_id)
        if parent is None or parent.recipe_id != recipe_id:
            raise ValidationError([{"field": "parentId", "message": "Komen induk tidak sah."}])

    reason = None
    status = "APPROVED"
    if not is_admin(user.role):
        result = check_spam(text)
        if result.is_spam:
            status = "PENDING"
            reason = result.reason
            log.info("Comment held for moderation user_id=%s recipe_id=%s reason=%s", user.id, recipe_id, reason)

    comment = Comment(content=text, status=status, recipe_id=recipe_id, user_id=user.id, parent_id=parent_id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    track_event("comment_created", recipe=recipe.slug)

    if parent is not None and status == "APPROVED":
        parent_author = parent.user
        if parent_author and parent_author.id != user.id and parent_author.subscribe_comment_reply:
            try:
                send_comment_reply_email(parent_author.email, user.display_name, recipe.title, recipe.slug, text)
            except MailError:
                # Notification is best-effort; the comment itself is already stored
                log.warning("Reply notification failed comment_id=%s", comment.id)

    return {"comment": serialize_comment(comment), "isPending": status == "PENDING", "reason": reason}


def _replies(db: Session, parent_ids: list[int], include_all: bool = False) -> dict[int, list[Comment]]:
    if not parent_ids:
        return {}
    q = db.query(Comment).options(selectinload(Comment.user)).filter(Comment.parent_id.in_(parent_ids))
    if not include_all:
        q = q.filter(Comment.status == "APPROVED")
    rows = q.order_by(Comment.created_at.asc(), Comment.id.asc()).all()
    out: dict[int, list[Comment]] = {}
    for r in rows:
        out.setdefault(r.parent_id, []).append(r)  # type: ignore[arg-type]
    return out


def recipe_comments(db: Session, recipe_id: int, include_all: bool = False) -> list[dict[str, Any]]:
    """Top-level approved comments newest first, each with approved replies (oldest first) two levels deep.

    include_all keeps comments of every status (admin view).
    """
    q = (
        db.query(Comment)
        .options(selectinload(Comment.user))
        .filter(Comment.recipe_id == recipe_id, Comment.parent_id.is_(None))
    )
    if not include_all:
        q = q.filter(Comment.status == "APPROVED")
    top = q.order_by(Comment.created_at.desc(), Comment.id.desc()).all()
    tree = [dict(serialize_comment(c), replies=[]) for c in top]
    level = tree
    for _depth in range(REPLY_DEPTH):
        by_parent = _replies(db, [node["id"] for node in level], include_all)
        next_level = []
        for node in level:
            node["replies"] = [dict(serialize_comment(r), replies=[]) for r in by_parent.get(node["id"], [])]
            next_level.extend(node["replies"])
        level = next_level
    return tree


def count_tree(nodes: list[dict[str, Any]]) -> int:
    return sum(1 + count_tree(n["replies"]) for n in nodes)


# ---- Moderation ----

def list_for_moderation(db: Session, status: str = "ALL") -> list[dict[str, Any]]:
    st = (status or "ALL").upper()
    if st != "ALL" and st not in COMMENT_STATUSES:
        raise DomainError(400, "bad_request", "invalid_status")
    q = db.query(Comment).options(selectinload(Comment.user), selectinload(Comment.recipe))
    if st != "ALL":
        q = q.filter(Comment.status == st)
    out = []
    for c in q.order_by(Comment.created_at.desc(), Comment.id.desc()).all():
        row = serialize_comment(c)
        row["recipe"] = {"title": c.recipe.title, "slug": c.recipe.slug} if c.recipe else None
        out.append(row)
    return out


def _delete_with_replies(db: Session, ids: list[int]) -> int:
    # Replies reference their parent; delete descendants first
    removed = 0
    frontier = list(ids)
    layers: list[list[int]] = []
    while frontier:
        layers.append(frontier)
        frontier = [cid for (cid,) in db.query(Comment.id).filter(Comment.parent_id.in_(frontier)).all()]
    for layer in reversed(layers):
        removed += db.query(Comment).filter(Comment.id.in_(layer)).delete(synchronize_session=False)
    return removed


def delete_comment(db: Session, comment_id: int, actor_id: int | None = None) -> None:
    if db.get(Comment, comment_id) is None:
        raise NotFoundError("comment_not_found")
    _delete_with_replies(db, [comment_id])
    db.commit()
    record_audit_event("comment_deleted", actor_user_id=actor_id, comment_id=comment_id)


def bulk_moderate(db: Session, comment_ids: list[Any] | None, action: str | None, actor_id: int | None = None) -> int:
    ids = [int(i) for i in (comment_ids or []) if str(i).isdigit()]
    if not ids:
        raise DomainError(400, "bad_request", "no_comments_selected")
    act = (action or "").lower()
    if act == "delete":
        count = _delete_with_replies(db, ids)
    else:
        new_status = {"approve": "APPROVED", "reject": "REJECTED", "spam": "SPAM"}.get(act, "PENDING")
        count = (
            db.query(Comment)
            .filter(Comment.id.in_(ids))
            .update({Comment.status: new_status, Comment.updated_at: utcnow()}, synchronize_session=False)
        )
    db.commit()
    record_audit_event("comments_moderated", actor_user_id=actor_id, action=act or "pending", count=count, ids=ids)
    return count


__all__ = [
    "create_comment",
    "recipe_comments",
    "list_for_moderation",
    "delete_comment",
    "bulk_moderate",
    "serialize_comment",
]
