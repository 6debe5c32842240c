"""Admin JSON API under /api/admin.

All routes require the admin role. Handlers translate request bodies into the
service payloads and serialize results; the business rules live in
admin_service, images, drafts and recipe_audit.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request, session

from .admin_service import (
    dashboard_counts,
    delete_category,
    delete_guide,
    delete_recipe,
    delete_tag,
    get_recipe,
    list_categories,
    list_recipes,
    list_tags,
    list_users,
    promote_user,
    save_category,
    save_guide,
    save_recipe,
    save_tag,
    serialize_user,
    set_published,
    set_user_status,
    toggle_editors_pick,
)
from .app_authz import require_roles
from .audit_events import list_audit_events
from .db import get_session
from .drafts import (
    delete_draft,
    generate_draft,
    get_draft,
    list_drafts,
    publish_draft,
    serialize_draft,
    update_draft,
)
from .images import add_guide_image, add_recipe_image, delete_guide_image, delete_image, set_primary_image
from .models import Category, Guide, GuideImage, RecipeImage, Tag
from .pagination import paginate_sequence, parse_page_params
from .recipe_audit import accept_audit, audit_recipe, pending_audits, reject_audit, serialize_audit
from .recipe_service import serialize_card, serialize_recipe
from .telemetry import track_event

bp = Blueprint("admin_api", __name__, url_prefix="/api/admin")

# camelCase request keys -> DraftRecipe columns
_DRAFT_FIELDS = {
    "title": "title",
    "slug": "slug",
    "shortDescription": "short_description",
    "description": "description",
    "prepTime": "prep_time",
    "cookTime": "cook_time",
    "totalTime": "total_time",
    "servings": "servings",
    "servingType": "serving_type",
    "difficulty": "difficulty",
    "tags": "tags",
    "tips": "tips",
    "sections": "sections",
}


def _actor() -> int | None:
    uid = session.get("user_id")
    return int(uid) if uid else None


def _body() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def _serialize_category(c: Category) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "image": c.image,
        "recipesCount": c.recipes_count,
    }


def _serialize_tag(t: Tag, count: int | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {"id": t.id, "name": t.name, "slug": t.slug}
    if count is not None:
        out["recipeCount"] = count
    return out


def _serialize_guide(g: Guide) -> dict[str, Any]:
    return {
        "id": g.id,
        "title": g.title,
        "slug": g.slug,
        "content": g.content,
        "sections": [{"id": s.id, "title": s.title, "content": s.content} for s in g.sections],
        "tags": [t.name for t in g.tags],
        "images": [_serialize_image(i) for i in g.images],
        "createdAt": g.created_at.isoformat() if g.created_at else None,
    }


def _serialize_image(i: RecipeImage | GuideImage) -> dict[str, Any]:
    return {
        "id": i.id,
        "url": i.url,
        "mediumUrl": i.medium_url,
        "thumbnailUrl": i.thumbnail_url,
        "alt": i.alt,
        "isPrimary": i.is_primary,
        "width": i.width,
        "height": i.height,
    }


@bp.get("/dashboard")
@require_roles("admin")
def dashboard():
    db = get_session()
    try:
        return jsonify({"ok": True, "counts": dashboard_counts(db)})
    finally:
        db.close()


@bp.get("/audit-events")
@require_roles("admin")
def audit_events():
    page_req = parse_page_params(request.args, default_size=50)
    events = list_audit_events(request.args.get("action"), limit=500)
    return jsonify(paginate_sequence(events, page_req))


# ---- Users ----

@bp.get("/users")
@require_roles("admin")
def users():
    db = get_session()
    try:
        rows = list_users(db, request.args.get("search"))
        return jsonify({"ok": True, "items": [serialize_user(u) for u in rows]})
    finally:
        db.close()


@bp.post("/users/<int:user_id>/<any(suspend, activate, promote):action>")
@require_roles("admin")
def user_action(user_id: int, action: str):
    db = get_session()
    try:
        actor = _actor() or 0
        if action == "promote":
            user = promote_user(db, actor, user_id)
        else:
            user = set_user_status(db, actor, user_id, "SUSPENDED" if action == "suspend" else "ACTIVE")
        return jsonify({"ok": True, "user": serialize_user(user)})
    finally:
        db.close()


# ---- Recipes ----

@bp.get("/recipes")
@require_roles("admin")
def recipes():
    db = get_session()
    try:
        rows = list_recipes(db, request.args.get("status"), request.args.get("search"))
        items = [dict(serialize_card(r), status=r.status, isEditorsPick=r.is_editors_pick) for r in rows]
        return jsonify({"ok": True, "items": items})
    finally:
        db.close()


@bp.get("/recipes/<int:recipe_id>")
@require_roles("admin")
def recipe(recipe_id: int):
    db = get_session()
    try:
        return jsonify({"ok": True, "recipe": serialize_recipe(get_recipe(db, recipe_id))})
    finally:
        db.close()


@bp.post("/recipes")
@require_roles("admin")
def create_recipe():
    db = get_session()
    try:
        r = save_recipe(db, _body(), actor_id=_actor())
        return jsonify({"ok": True, "recipe": serialize_recipe(r)}), 201
    finally:
        db.close()


@bp.put("/recipes/<int:recipe_id>")
@require_roles("admin")
def update_recipe(recipe_id: int):
    db = get_session()
    try:
        r = save_recipe(db, _body(), recipe_id=recipe_id, actor_id=_actor())
        return jsonify({"ok": True, "recipe": serialize_recipe(r)})
    finally:
        db.close()


@bp.delete("/recipes/<int:recipe_id>")
@require_roles("admin")
def remove_recipe(recipe_id: int):
    db = get_session()
    try:
        delete_recipe(db, recipe_id, actor_id=_actor())
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.post("/recipes/<int:recipe_id>/<any(publish, unpublish):action>")
@require_roles("admin")
def publish(recipe_id: int, action: str):
    db = get_session()
    try:
        r = set_published(db, recipe_id, action == "publish", actor_id=_actor())
        return jsonify({"ok": True, "status": r.status, "publishedAt": r.published_at.isoformat() if r.published_at else None})
    finally:
        db.close()


@bp.post("/recipes/<int:recipe_id>/editors-pick")
@require_roles("admin")
def editors_pick(recipe_id: int):
    db = get_session()
    try:
        r = toggle_editors_pick(db, recipe_id, actor_id=_actor())
        return jsonify({"ok": True, "isEditorsPick": r.is_editors_pick})
    finally:
        db.close()


# ---- Images ----

@bp.post("/recipes/<int:recipe_id>/images")
@require_roles("admin")
def upload_image(recipe_id: int):
    db = get_session()
    try:
        image = add_recipe_image(db, recipe_id, request.files.get("image"), request.form.get("alt"))
        return jsonify({"ok": True, "image": _serialize_image(image)}), 201
    finally:
        db.close()


@bp.delete("/recipes/<int:recipe_id>/images/<int:image_id>")
@require_roles("admin")
def remove_image(recipe_id: int, image_id: int):
    db = get_session()
    try:
        delete_image(db, recipe_id, image_id)
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.post("/recipes/<int:recipe_id>/images/<int:image_id>/primary")
@require_roles("admin")
def primary_image(recipe_id: int, image_id: int):
    db = get_session()
    try:
        image = set_primary_image(db, recipe_id, image_id)
        return jsonify({"ok": True, "image": _serialize_image(image)})
    finally:
        db.close()


# ---- Categories & tags ----

@bp.get("/categories")
@require_roles("admin")
def categories():
    db = get_session()
    try:
        return jsonify({"ok": True, "items": [_serialize_category(c) for c in list_categories(db)]})
    finally:
        db.close()


@bp.post("/categories")
@require_roles("admin")
def create_category():
    db = get_session()
    try:
        return jsonify({"ok": True, "category": _serialize_category(save_category(db, _body()))}), 201
    finally:
        db.close()


@bp.put("/categories/<int:category_id>")
@require_roles("admin")
def update_category(category_id: int):
    db = get_session()
    try:
        return jsonify({"ok": True, "category": _serialize_category(save_category(db, _body(), category_id))})
    finally:
        db.close()


@bp.delete("/categories/<int:category_id>")
@require_roles("admin")
def remove_category(category_id: int):
    db = get_session()
    try:
        delete_category(db, category_id)
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.get("/tags")
@require_roles("admin")
def tags():
    db = get_session()
    try:
        return jsonify({"ok": True, "items": [_serialize_tag(t, n) for t, n in list_tags(db)]})
    finally:
        db.close()


@bp.post("/tags")
@require_roles("admin")
def create_tag():
    db = get_session()
    try:
        return jsonify({"ok": True, "tag": _serialize_tag(save_tag(db, _body().get("name")))}), 201
    finally:
        db.close()


@bp.put("/tags/<int:tag_id>")
@require_roles("admin")
def update_tag(tag_id: int):
    db = get_session()
    try:
        return jsonify({"ok": True, "tag": _serialize_tag(save_tag(db, _body().get("name"), tag_id))})
    finally:
        db.close()


@bp.delete("/tags/<int:tag_id>")
@require_roles("admin")
def remove_tag(tag_id: int):
    db = get_session()
    try:
        delete_tag(db, tag_id)
        return jsonify({"ok": True})
    finally:
        db.close()


# ---- Guides ----

@bp.get("/guides")
@require_roles("admin")
def guides():
    db = get_session()
    try:
        rows = db.query(Guide).order_by(Guide.created_at.desc(), Guide.id.desc()).all()
        return jsonify({"ok": True, "items": [_serialize_guide(g) for g in rows]})
    finally:
        db.close()


@bp.post("/guides")
@require_roles("admin")
def create_guide():
    db = get_session()
    try:
        g = save_guide(db, _body(), actor_id=_actor())
        return jsonify({"ok": True, "guide": _serialize_guide(g)}), 201
    finally:
        db.close()


@bp.put("/guides/<int:guide_id>")
@require_roles("admin")
def update_guide(guide_id: int):
    db = get_session()
    try:
        g = save_guide(db, _body(), guide_id=guide_id, actor_id=_actor())
        return jsonify({"ok": True, "guide": _serialize_guide(g)})
    finally:
        db.close()


@bp.delete("/guides/<int:guide_id>")
@require_roles("admin")
def remove_guide(guide_id: int):
    db = get_session()
    try:
        delete_guide(db, guide_id)
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.post("/guides/<int:guide_id>/images")
@require_roles("admin")
def upload_guide_image(guide_id: int):
    db = get_session()
    try:
        image = add_guide_image(db, guide_id, request.files.get("image"), request.form.get("alt"))
        return jsonify({"ok": True, "image": _serialize_image(image)}), 201
    finally:
        db.close()


@bp.delete("/guides/<int:guide_id>/images/<int:image_id>")
@require_roles("admin")
def remove_guide_image(guide_id: int, image_id: int):
    db = get_session()
    try:
        delete_guide_image(db, guide_id, image_id)
        return jsonify({"ok": True})
    finally:
        db.close()


# ---- AI drafts ----

@bp.get("/drafts")
@require_roles("admin")
def drafts():
    db = get_session()
    try:
        return jsonify({"ok": True, "items": [serialize_draft(d) for d in list_drafts(db)]})
    finally:
        db.close()


@bp.post("/drafts/generate")
@require_roles("admin")
def generate():
    data = _body()
    db = get_session()
    try:
        draft = generate_draft(db, _actor(), data.get("script"), data.get("prompt"))
        track_event("draft_generated")
        return jsonify({"ok": True, "draft": serialize_draft(draft)}), 201
    finally:
        db.close()


@bp.get("/drafts/<int:draft_id>")
@require_roles("admin")
def draft(draft_id: int):
    db = get_session()
    try:
        return jsonify({"ok": True, "draft": serialize_draft(get_draft(db, draft_id))})
    finally:
        db.close()


@bp.put("/drafts/<int:draft_id>")
@require_roles("admin")
def update(draft_id: int):
    data = _body()
    fields = {col: data[key] for key, col in _DRAFT_FIELDS.items() if key in data}
    db = get_session()
    try:
        return jsonify({"ok": True, "draft": serialize_draft(update_draft(db, draft_id, fields))})
    finally:
        db.close()


@bp.delete("/drafts/<int:draft_id>")
@require_roles("admin")
def remove_draft(draft_id: int):
    db = get_session()
    try:
        delete_draft(db, draft_id)
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.post("/drafts/<int:draft_id>/publish")
@require_roles("admin")
def publish_draft_route(draft_id: int):
    data = _body()
    category_id = data.get("categoryId")
    db = get_session()
    try:
        r = publish_draft(
            db,
            draft_id,
            slug=data.get("slug"),
            category_id=int(category_id) if category_id not in (None, "") else None,
            actor_id=_actor(),
        )
        return jsonify({"ok": True, "recipe": {"id": r.id, "slug": r.slug, "status": r.status}}), 201
    finally:
        db.close()


# ---- AI metadata audit ----

@bp.get("/audits")
@require_roles("admin")
def audits():
    db = get_session()
    try:
        return jsonify({"ok": True, "items": [serialize_audit(r) for r in pending_audits(db)]})
    finally:
        db.close()


@bp.post("/audits/<int:recipe_id>")
@require_roles("admin")
def run_audit(recipe_id: int):
    db = get_session()
    try:
        r = audit_recipe(db, recipe_id)
        return jsonify({"ok": True, "audit": serialize_audit(r)})
    finally:
        db.close()


@bp.post("/audits/<int:recipe_id>/<any(accept, reject):decision>")
@require_roles("admin")
def decide_audit(recipe_id: int, decision: str):
    db = get_session()
    try:
        if decision == "accept":
            r = accept_audit(db, recipe_id, actor_id=_actor())
        else:
            r = reject_audit(db, recipe_id, actor_id=_actor())
        return jsonify({"ok": True, "recipe": serialize_recipe(r)})
    finally:
        db.close()

