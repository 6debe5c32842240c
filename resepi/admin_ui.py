"""Admin HTML pages under /admin.

Forms post back to the same services as the JSON API; validation errors
re-render the form with field messages, everything else redirects.
"""
from __future__ import annotations

from typing import Any

from flask import Blueprint, redirect, render_template, request, session, url_for
from werkzeug.datastructures import MultiDict

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
    set_published,
    set_user_status,
    toggle_editors_pick,
)
from .app_authz import require_roles
from .audit_events import list_audit_events
from .comments_service import bulk_moderate, list_for_moderation
from .db import get_session
from .drafts import delete_draft, generate_draft, get_draft, list_drafts, publish_draft, update_draft
from .errors import DomainError, NotFoundError, ValidationError
from .images import add_guide_image, add_recipe_image, delete_guide_image, delete_image, set_primary_image
from .models import COMMENT_STATUSES, DIFFICULTIES, SECTION_TYPES, SERVING_TYPES, Guide
from .newsletter_service import add_subscriber, delete_subscriber, list_subscribers, update_subscriber
from .pagination import lenient_page, pager
from .recipe_audit import accept_audit, pending_audits, reject_audit

bp = Blueprint("admin_ui", __name__, url_prefix="/admin")


def _actor() -> int:
    return int(session.get("user_id") or 0)


def _errors(err: DomainError) -> dict[str, str]:
    if isinstance(err, ValidationError):
        return err.field_messages()
    return {"_": err.detail}


def _sections_from_form(form: MultiDict) -> list[dict[str, Any]]:
    titles = form.getlist("section_title")
    types = form.getlist("section_type")
    items = form.getlist("section_items")
    sections = []
    for i, items_text in enumerate(items):
        title = titles[i] if i < len(titles) else ""
        if not title.strip() and not items_text.strip():
            continue
        sections.append(
            {"title": title, "type": types[i] if i < len(types) else "INGREDIENTS", "items": items_text}
        )
    return sections


def recipe_payload(form: MultiDict) -> dict[str, Any]:
    """Translate the recipe form into the admin API payload shape."""
    payload: dict[str, Any] = {
        key: form.get(key)
        for key in (
            "title",
            "slug",
            "shortDescription",
            "description",
            "language",
            "prepTime",
            "cookTime",
            "totalTime",
            "servings",
            "servingType",
            "difficulty",
            "categoryId",
            "status",
        )
    }
    payload["tags"] = form.get("tags") or ""
    payload["tips"] = form.get("tips") or ""
    payload["sections"] = _sections_from_form(form)
    payload["isEditorsPick"] = form.get("isEditorsPick") == "on"
    return payload


def _recipe_form_vm(db, recipe=None, errors=None, form=None) -> dict[str, Any]:
    return {
        "recipe": recipe,
        "errors": errors or {},
        "form": form,
        "categories": list_categories(db),
        "difficulties": DIFFICULTIES,
        "serving_types": SERVING_TYPES,
        "section_types": SECTION_TYPES,
    }


@bp.get("/")
@require_roles("admin")
def dashboard():
    db = get_session()
    try:
        vm = {"counts": dashboard_counts(db), "events": list_audit_events(limit=20)}
        return render_template("admin/dashboard.html", vm=vm)
    finally:
        db.close()


# ---- Recipes ----

@bp.get("/recipes")
@require_roles("admin")
def recipes():
    status = request.args.get("status") or ""
    search = request.args.get("search") or ""
    db = get_session()
    try:
        vm = {"recipes": list_recipes(db, status, search), "status": status, "search": search}
        return render_template("admin/recipes.html", vm=vm)
    finally:
        db.close()


@bp.route("/recipes/new", methods=["GET", "POST"])
@require_roles("admin")
def recipe_new():
    db = get_session()
    try:
        if request.method == "POST":
            try:
                r = save_recipe(db, recipe_payload(request.form), actor_id=_actor())
            except DomainError as e:
                db.rollback()
                vm = _recipe_form_vm(db, errors=_errors(e), form=request.form)
                return render_template("admin/recipe_form.html", vm=vm), e.status
            return redirect(url_for("admin_ui.recipe_edit", recipe_id=r.id))
        return render_template("admin/recipe_form.html", vm=_recipe_form_vm(db))
    finally:
        db.close()


@bp.route("/recipes/<int:recipe_id>/edit", methods=["GET", "POST"])
@require_roles("admin")
def recipe_edit(recipe_id: int):
    db = get_session()
    try:
        if request.method == "POST":
            try:
                save_recipe(db, recipe_payload(request.form), recipe_id=recipe_id, actor_id=_actor())
            except DomainError as e:
                if isinstance(e, NotFoundError):
                    raise
                db.rollback()
                vm = _recipe_form_vm(db, get_recipe(db, recipe_id), _errors(e), request.form)
                return render_template("admin/recipe_form.html", vm=vm), e.status
            return redirect(url_for("admin_ui.recipe_edit", recipe_id=recipe_id))
        return render_template("admin/recipe_form.html", vm=_recipe_form_vm(db, get_recipe(db, recipe_id)))
    finally:
        db.close()


@bp.post("/recipes/<int:recipe_id>/<any(publish, unpublish, pick, delete):action>")
@require_roles("admin")
def recipe_action(recipe_id: int, action: str):
    db = get_session()
    try:
        if action == "delete":
            delete_recipe(db, recipe_id, actor_id=_actor())
        elif action == "pick":
            toggle_editors_pick(db, recipe_id, actor_id=_actor())
        else:
            set_published(db, recipe_id, action == "publish", actor_id=_actor())
        nxt = request.form.get("next") or ""
        return redirect(nxt if nxt.startswith("/admin/") else url_for("admin_ui.recipes"))
    finally:
        db.close()


@bp.route("/recipes/<int:recipe_id>/images", methods=["GET", "POST"])
@require_roles("admin")
def recipe_images(recipe_id: int):
    db = get_session()
    try:
        recipe = get_recipe(db, recipe_id)
        errors: dict[str, str] = {}
        if request.method == "POST":
            try:
                add_recipe_image(db, recipe_id, request.files.get("image"), request.form.get("alt"))
                return redirect(url_for("admin_ui.recipe_images", recipe_id=recipe_id))
            except ValidationError as e:
                errors = e.field_messages()
        vm = {"recipe": recipe, "images": sorted(recipe.images, key=lambda i: i.id), "errors": errors}
        return render_template("admin/recipe_images.html", vm=vm), 422 if errors else 200
    finally:
        db.close()


@bp.post("/recipes/<int:recipe_id>/images/<int:image_id>/<any(primary, delete):action>")
@require_roles("admin")
def recipe_image_action(recipe_id: int, image_id: int, action: str):
    db = get_session()
    try:
        if action == "primary":
            set_primary_image(db, recipe_id, image_id)
        else:
            delete_image(db, recipe_id, image_id)
        return redirect(url_for("admin_ui.recipe_images", recipe_id=recipe_id))
    finally:
        db.close()


# ---- Categories & tags ----

@bp.route("/categories", methods=["GET", "POST"])
@require_roles("admin")
def categories():
    db = get_session()
    try:
        errors: dict[str, str] = {}
        status = 200
        if request.method == "POST":
            cid = request.form.get("id") or ""
            try:
                save_category(db, request.form.to_dict(), int(cid) if cid.isdigit() else None)
                return redirect(url_for("admin_ui.categories"))
            except DomainError as e:
                if isinstance(e, NotFoundError):
                    raise
                db.rollback()
                errors, status = _errors(e), e.status
        vm = {"categories": list_categories(db), "errors": errors}
        return render_template("admin/categories.html", vm=vm), status
    finally:
        db.close()


@bp.post("/categories/<int:category_id>/delete")
@require_roles("admin")
def category_delete(category_id: int):
    db = get_session()
    try:
        delete_category(db, category_id)
        return redirect(url_for("admin_ui.categories"))
    finally:
        db.close()


@bp.route("/tags", methods=["GET", "POST"])
@require_roles("admin")
def tags():
    db = get_session()
    try:
        errors: dict[str, str] = {}
        status = 200
        if request.method == "POST":
            tid = request.form.get("id") or ""
            try:
                save_tag(db, request.form.get("name"), int(tid) if tid.isdigit() else None)
                return redirect(url_for("admin_ui.tags"))
            except DomainError as e:
                if isinstance(e, NotFoundError):
                    raise
                db.rollback()
                errors, status = _errors(e), e.status
        return render_template("admin/tags.html", vm={"tags": list_tags(db), "errors": errors}), status
    finally:
        db.close()


@bp.post("/tags/<int:tag_id>/delete")
@require_roles("admin")
def tag_delete(tag_id: int):
    db = get_session()
    try:
        delete_tag(db, tag_id)
        return redirect(url_for("admin_ui.tags"))
    finally:
        db.close()


# ---- Guides ----

def _guide_payload(form: MultiDict) -> dict[str, Any]:
    titles = form.getlist("section_title")
    contents = form.getlist("section_content")
    return {
        "title": form.get("title"),
        "slug": form.get("slug"),
        "content": form.get("content"),
        "tags": form.get("tags") or "",
        "sections": [
            {"title": titles[i] if i < len(titles) else "", "content": c} for i, c in enumerate(contents)
        ],
    }


@bp.get("/guides")
@require_roles("admin")
def guides():
    db = get_session()
    try:
        rows = db.query(Guide).order_by(Guide.created_at.desc(), Guide.id.desc()).all()
        return render_template("admin/guides.html", vm={"guides": rows})
    finally:
        db.close()


@bp.route("/guides/new", methods=["GET", "POST"], defaults={"guide_id": None})
@bp.route("/guides/<int:guide_id>/edit", methods=["GET", "POST"])
@require_roles("admin")
def guide_form(guide_id: int | None):
    db = get_session()
    try:
        guide = db.get(Guide, guide_id) if guide_id is not None else None
        if guide_id is not None and guide is None:
            raise NotFoundError("guide_not_found")
        if request.method == "POST":
            try:
                save_guide(db, _guide_payload(request.form), guide_id=guide_id, actor_id=_actor())
                return redirect(url_for("admin_ui.guides"))
            except DomainError as e:
                if isinstance(e, NotFoundError):
                    raise
                db.rollback()
                vm = {"guide": guide, "errors": _errors(e), "form": request.form}
                return render_template("admin/guide_form.html", vm=vm), e.status
        return render_template("admin/guide_form.html", vm={"guide": guide, "errors": {}, "form": None})
    finally:
        db.close()


@bp.post("/guides/<int:guide_id>/delete")
@require_roles("admin")
def guide_delete(guide_id: int):
    db = get_session()
    try:
        delete_guide(db, guide_id)
        return redirect(url_for("admin_ui.guides"))
    finally:
        db.close()


@bp.route("/guides/<int:guide_id>/images", methods=["GET", "POST"])
@require_roles("admin")
def guide_images(guide_id: int):
    db = get_session()
    try:
        guide = db.get(Guide, guide_id)
        if guide is None:
            raise NotFoundError("guide_not_found")
        errors: dict[str, str] = {}
        if request.method == "POST":
            try:
                add_guide_image(db, guide_id, request.files.get("image"), request.form.get("alt"))
                return redirect(url_for("admin_ui.guide_images", guide_id=guide_id))
            except ValidationError as e:
                errors = e.field_messages()
        vm = {"guide": guide, "images": list(guide.images), "errors": errors}
        return render_template("admin/guide_images.html", vm=vm), 422 if errors else 200
    finally:
        db.close()


@bp.post("/guides/<int:guide_id>/images/<int:image_id>/delete")
@require_roles("admin")
def guide_image_delete(guide_id: int, image_id: int):
    db = get_session()
    try:
        delete_guide_image(db, guide_id, image_id)
        return redirect(url_for("admin_ui.guide_images", guide_id=guide_id))
    finally:
        db.close()


# ---- Moderation, newsletter, users ----

@bp.get("/moderation")
@require_roles("admin")
def moderation():
    status = (request.args.get("status") or "PENDING").upper()
    db = get_session()
    try:
        vm = {"comments": list_for_moderation(db, status), "status": status, "statuses": ("ALL",) + COMMENT_STATUSES}
        return render_template("admin/moderation.html", vm=vm)
    finally:
        db.close()


@bp.post("/moderation")
@require_roles("admin")
def moderation_bulk():
    db = get_session()
    try:
        bulk_moderate(db, request.form.getlist("commentIds"), request.form.get("action"), actor_id=_actor())
        return redirect(url_for("admin_ui.moderation", status=request.form.get("status") or "PENDING"))
    finally:
        db.close()


@bp.get("/newsletter")
@require_roles("admin")
def newsletter():
    search = request.args.get("search") or ""
    status = request.args.get("status") or ""
    page = lenient_page(request.args.get("page"))
    db = get_session()
    try:
        rows, total = list_subscribers(db, search, status, page)
        vm = {
            "subscribers": rows,
            "search": search,
            "status": status,
            "pager": pager(page, total, 20),
        }
        return render_template("admin/newsletter.html", vm=vm)
    finally:
        db.close()


@bp.post("/newsletter")
@require_roles("admin")
def newsletter_save():
    form = request.form
    sid = form.get("id") or ""
    db = get_session()
    try:
        if form.get("action") == "delete" and sid.isdigit():
            delete_subscriber(db, int(sid))
        elif sid.isdigit():
            update_subscriber(db, int(sid), form.get("email"), form.get("isVerified") == "on")
        else:
            add_subscriber(db, form.get("email"), form.get("isVerified") == "on")
        return redirect(url_for("admin_ui.newsletter"))
    finally:
        db.close()


@bp.get("/users")
@require_roles("admin")
def users():
    search = request.args.get("search") or ""
    db = get_session()
    try:
        return render_template("admin/users.html", vm={"users": list_users(db, search), "search": search})
    finally:
        db.close()


@bp.post("/users/<int:user_id>/<any(suspend, activate, promote):action>")
@require_roles("admin")
def user_action(user_id: int, action: str):
    db = get_session()
    try:
        if action == "promote":
            promote_user(db, _actor(), user_id)
        else:
            set_user_status(db, _actor(), user_id, "SUSPENDED" if action == "suspend" else "ACTIVE")
        return redirect(url_for("admin_ui.users"))
    finally:
        db.close()


# ---- AI drafts & audit ----

@bp.get("/drafts")
@require_roles("admin")
def drafts():
    db = get_session()
    try:
        return render_template("admin/drafts.html", vm={"drafts": list_drafts(db)})
    finally:
        db.close()


@bp.route("/drafts/generate", methods=["GET", "POST"])
@require_roles("admin")
def draft_generate():
    if request.method == "GET":
        return render_template("admin/draft_generate.html", vm={"errors": {}, "script": ""})
    db = get_session()
    try:
        try:
            draft = generate_draft(db, _actor(), request.form.get("script"), request.form.get("prompt"))
        except ValidationError as e:
            vm = {"errors": e.field_messages(), "script": request.form.get("script") or ""}
            return render_template("admin/draft_generate.html", vm=vm), 422
        return redirect(url_for("admin_ui.draft_detail", draft_id=draft.id))
    finally:
        db.close()


@bp.route("/drafts/<int:draft_id>", methods=["GET", "POST"])
@require_roles("admin")
def draft_detail(draft_id: int):
    db = get_session()
    try:
        errors: dict[str, str] = {}
        status = 200
        if request.method == "POST":
            form = request.form
            try:
                if form.get("action") == "publish":
                    cid = form.get("categoryId") or ""
                    r = publish_draft(
                        db, draft_id, slug=form.get("slug"), category_id=int(cid) if cid.isdigit() else None, actor_id=_actor()
                    )
                    return redirect(url_for("admin_ui.recipe_edit", recipe_id=r.id))
                if form.get("action") == "delete":
                    delete_draft(db, draft_id)
                    return redirect(url_for("admin_ui.drafts"))
                fields = {
                    k: form.get(k)
                    for k in (
                        "title",
                        "slug",
                        "short_description",
                        "description",
                        "prep_time",
                        "cook_time",
                        "total_time",
                        "servings",
                        "serving_type",
                        "difficulty",
                        "tags",
                        "tips",
                        "sections",
                    )
                    if k in form
                }
                update_draft(db, draft_id, fields)
                return redirect(url_for("admin_ui.draft_detail", draft_id=draft_id))
            except DomainError as e:
                if isinstance(e, NotFoundError):
                    raise
                db.rollback()
                errors, status = _errors(e), e.status
        vm = {
            "draft": get_draft(db, draft_id),
            "categories": list_categories(db),
            "difficulties": DIFFICULTIES,
            "errors": errors,
        }
        return render_template("admin/draft_detail.html", vm=vm), status
    finally:
        db.close()


@bp.get("/audits")
@require_roles("admin")
def audits():
    db = get_session()
    try:
        return render_template("admin/audits.html", vm={"recipes": pending_audits(db)})
    finally:
        db.close()


@bp.post("/audits/<int:recipe_id>/<any(accept, reject):decision>")
@require_roles("admin")
def audit_decision(recipe_id: int, decision: str):
    db = get_session()
    try:
        if decision == "accept":
            accept_audit(db, recipe_id, actor_id=_actor())
        else:
            reject_audit(db, recipe_id, actor_id=_actor())
        return redirect(url_for("admin_ui.audits"))
    finally:
        db.close()
