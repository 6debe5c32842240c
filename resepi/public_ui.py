"""Public site pages: home, recipe detail, listings, taxonomy, search, guides,
author profiles, static info pages and the contact form."""
from __future__ import annotations

import logging

from flask import Blueprint, abort, redirect, render_template, request, session, url_for

from .account_service import valid_email
from .comments_service import count_tree, recipe_comments
from .counters import record_view, total_views
from .db import get_session
from .errors import UpstreamError, ValidationError
from .http_limits import limit
from .mailer import MAIL_FAILED_MESSAGE, MailError, send_contact_message
from .models import DIFFICULTIES
from .pagination import lenient_page, pager
from .recipe_service import (
    CATEGORY_PAGE_SIZE,
    LATEST_PAGE_SIZE,
    TAG_PAGE_SIZE,
    all_categories,
    author_profile,
    category_recipes,
    get_guide,
    get_recipe_by_slug,
    home_page,
    latest_recipes,
    list_guides,
    ordered_images,
    popular_recipes,
    recipes_by_tag,
)
from .roles import is_admin
from .saved_service import is_saved
from .search import SEARCH_PAGE_SIZE, search_recipes

log = logging.getLogger(__name__)

bp = Blueprint("public_ui", __name__)

INFO_PAGES = {
    "tentang-kami": "Tentang Kami",
    "dasar-privasi": "Dasar Privasi",
    "terma-penggunaan": "Terma Penggunaan",
}


@bp.get("/")
def index():
    db = get_session()
    try:
        vm = home_page(db)
        return render_template("home.html", vm=vm)
    finally:
        db.close()


@bp.get("/resepi/<slug>")
def recipe_detail(slug: str):
    db = get_session()
    try:
        recipe = get_recipe_by_slug(db, slug, include_drafts=is_admin(session.get("role")))
        if recipe is None:
            abort(404)
        if recipe.status == "PUBLISHED":
            record_view(recipe.id)
        uid = session.get("user_id")
        saved = is_saved(db, int(uid), recipe.id) if uid else None
        comments = recipe_comments(db, recipe.id)
        vm = {
            "recipe": recipe,
            "images": ordered_images(recipe),
            "comments": comments,
            "comment_count": count_tree(comments),
            "views": total_views(recipe),
            "saved": saved,
        }
        return render_template("recipe_detail.html", vm=vm)
    finally:
        db.close()


@bp.get("/resepi/terbaru")
def latest():
    page = lenient_page(request.args.get("page"))
    db = get_session()
    try:
        items, total = latest_recipes(db, page)
        vm = {"title": "Resepi Terbaru", "recipes": items, "pager": pager(page, total, LATEST_PAGE_SIZE)}
        return render_template("recipe_list.html", vm=vm)
    finally:
        db.close()


@bp.get("/resepi/popular")
def popular():
    sort = "likes" if request.args.get("sort") == "likes" else "views"
    db = get_session()
    try:
        vm = {"title": "Resepi Popular", "recipes": popular_recipes(db, sort), "sort": sort, "pager": None}
        return render_template("recipe_list.html", vm=vm)
    finally:
        db.close()


@bp.get("/resepi/cari")
def search_page():
    keyword = (request.args.get("q") or "").strip()
    difficulty = request.args.get("difficulty") or None
    category = request.args.get("category") or ""
    page = lenient_page(request.args.get("page"))
    db = get_session()
    try:
        items, total = search_recipes(
            db,
            keyword=keyword,
            difficulty=difficulty,
            category_id=int(category) if category.isdigit() else None,
            page=page,
        )
        vm = {
            "keyword": keyword,
            "difficulty": (difficulty or "").upper(),
            "category": category,
            "categories": all_categories(db),
            "difficulties": DIFFICULTIES,
            "recipes": items,
            "pager": pager(page, total, SEARCH_PAGE_SIZE),
        }
        return render_template("search.html", vm=vm)
    finally:
        db.close()


@bp.get("/kategori")
def categories():
    db = get_session()
    try:
        return render_template("categories.html", vm={"categories": all_categories(db)})
    finally:
        db.close()


@bp.get("/kategori/<slug>")
def category_page(slug: str):
    page = lenient_page(request.args.get("page"))
    difficulty = request.args.get("difficulty") or None
    sort = request.args.get("sort") or None
    db = get_session()
    try:
        category, items, total = category_recipes(db, slug, page, difficulty, sort)
        if category is None:
            abort(404)
        vm = {
            "category": category,
            "recipes": items,
            "difficulty": (difficulty or "").upper(),
            "difficulties": DIFFICULTIES,
            "sort": sort,
            "pager": pager(page, total, CATEGORY_PAGE_SIZE),
        }
        return render_template("category.html", vm=vm)
    finally:
        db.close()


@bp.get("/tag/<slug>")
def tag_page(slug: str):
    page = lenient_page(request.args.get("page"))
    db = get_session()
    try:
        name, items, total = recipes_by_tag(db, slug, page)
        vm = {"title": f"Resepi {name}", "tag": name, "recipes": items, "pager": pager(page, total, TAG_PAGE_SIZE)}
        return render_template("recipe_list.html", vm=vm)
    finally:
        db.close()


@bp.get("/panduan")
def guides():
    db = get_session()
    try:
        return render_template("guides.html", vm={"guides": list_guides(db)})
    finally:
        db.close()


@bp.get("/panduan/<slug>")
def guide_detail(slug: str):
    db = get_session()
    try:
        guide = get_guide(db, slug)
        if guide is None:
            abort(404)
        return render_template("guide_detail.html", vm={"guide": guide})
    finally:
        db.close()


@bp.get("/profil/<username>")
def author(username: str):
    db = get_session()
    try:
        user, recipes = author_profile(db, username)
        if user is None:
            abort(404)
        return render_template("author.html", vm={"author": user, "recipes": recipes})
    finally:
        db.close()


@bp.get("/tentang-kami", defaults={"page": "tentang-kami"})
@bp.get("/dasar-privasi", defaults={"page": "dasar-privasi"})
@bp.get("/terma-penggunaan", defaults={"page": "terma-penggunaan"})
def info_page(page: str):
    return render_template(f"info/{page}.html", vm={"title": INFO_PAGES[page]})


@bp.get("/hubungi-kami")
def contact():
    return render_template("contact.html", vm={"sent": request.args.get("sent") == "1", "errors": {}, "form": {}})


@bp.post("/hubungi-kami")
@limit("contact")
def contact_submit():
    data = request.get_json(silent=True) if request.is_json else request.form
    data = data or {}
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip()
    message = (data.get("message") or "").strip()
    errors = []
    if not name:
        errors.append({"field": "name", "message": "Nama diperlukan."})
    if not email:
        errors.append({"field": "email", "message": "Emel diperlukan."})
    elif not valid_email(email):
        errors.append({"field": "email", "message": "Format emel tidak sah."})
    if not message:
        errors.append({"field": "message", "message": "Mesej diperlukan."})
    if errors:
        if request.is_json:
            raise ValidationError(errors)
        vm = {"sent": False, "errors": ValidationError(errors).field_messages(), "form": dict(request.form)}
        return render_template("contact.html", vm=vm), 422
    try:
        send_contact_message(name, email, message)
    except MailError as e:
        log.warning("Contact form mail failed from=%s: %s", email, e)
        if request.is_json:
            raise UpstreamError("mail_failed") from e
        vm = {"sent": False, "errors": {"_": MAIL_FAILED_MESSAGE}, "form": dict(request.form)}
        return render_template("contact.html", vm=vm), 502
    log.info("Contact form forwarded from=%s", email)
    if request.is_json:
        return {"ok": True, "message": "Mesej anda telah dihantar."}
    return redirect(url_for("public_ui.contact", sent="1"))
