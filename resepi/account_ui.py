from __future__ import annotations

from flask import Blueprint, redirect, render_template, request, url_for

from .account_service import change_password, update_notifications, update_profile
from .app_authz import current_user, require_active_user
from .db import get_session
from .errors import DomainError, ValidationError
from .saved_service import list_saved, save_recipe, unsave, update_notes

bp = Blueprint("account_ui", __name__, url_prefix="/account")


def _errors(err: DomainError) -> dict[str, str]:
    if isinstance(err, ValidationError):
        return err.field_messages()
    if err.detail == "username_taken":
        return {"username": "Nama pengguna telah digunakan."}
    return {"_": err.detail}


@bp.get("/")
def overview():
    db = get_session()
    try:
        user = current_user(db)
        saved = list_saved(db, user.id)
        return render_template("account/overview.html", vm={"user": user, "saved_count": len(saved)})
    finally:
        db.close()


@bp.route("/profile", methods=["GET", "POST"])
def profile():
    db = get_session()
    try:
        user = current_user(db)
        vm = {"user": user, "errors": {}, "saved": request.args.get("saved") == "1"}
        if request.method == "POST":
            user = require_active_user(db)
            form = request.form
            try:
                update_profile(db, user, form.get("name"), form.get("username"), form.get("bio"))
            except DomainError as e:
                db.rollback()
                vm["errors"] = _errors(e)
                return render_template("account/profile.html", vm=vm), e.status
            return redirect(url_for("account_ui.profile", saved="1"))
        return render_template("account/profile.html", vm=vm)
    finally:
        db.close()


@bp.route("/security", methods=["GET", "POST"])
def security():
    db = get_session()
    try:
        user = current_user(db)
        vm = {"errors": {}, "saved": request.args.get("saved") == "1"}
        if request.method == "POST":
            form = request.form
            try:
                change_password(
                    db, user, form.get("currentPassword"), form.get("newPassword"), form.get("confirmPassword")
                )
            except ValidationError as e:
                vm["errors"] = e.field_messages()
                return render_template("account/security.html", vm=vm), 422
            return redirect(url_for("account_ui.security", saved="1"))
        return render_template("account/security.html", vm=vm)
    finally:
        db.close()


@bp.route("/notifications", methods=["GET", "POST"])
def notifications():
    db = get_session()
    try:
        user = current_user(db)
        if request.method == "POST":
            # Unchecked checkboxes are simply absent from the form
            update_notifications(
                db,
                user,
                request.form.get("subscribeCommentReply") == "on",
                request.form.get("subscribeNewsletter") == "on",
            )
            return redirect(url_for("account_ui.notifications", saved="1"))
        vm = {"user": user, "saved": request.args.get("saved") == "1"}
        return render_template("account/notifications.html", vm=vm)
    finally:
        db.close()


@bp.get("/saved")
def saved():
    db = get_session()
    try:
        user = current_user(db)
        return render_template("account/saved.html", vm={"saved": list_saved(db, user.id)})
    finally:
        db.close()


@bp.post("/saved")
def saved_add():
    recipe_id = request.form.get("recipe_id") or ""
    slug = request.form.get("slug") or ""
    db = get_session()
    try:
        user = current_user(db)
        if recipe_id.isdigit():
            save_recipe(db, user.id, int(recipe_id))
        if slug:
            return redirect(url_for("public_ui.recipe_detail", slug=slug))
        return redirect(url_for("account_ui.saved"))
    finally:
        db.close()


@bp.post("/saved/<int:saved_id>/notes")
def saved_notes(saved_id: int):
    db = get_session()
    try:
        user = current_user(db)
        update_notes(db, user.id, saved_id, request.form.get("notes"))
        return redirect(url_for("account_ui.saved"))
    finally:
        db.close()


@bp.post("/saved/<int:saved_id>/delete")
def saved_delete(saved_id: int):
    slug = request.form.get("slug") or ""
    db = get_session()
    try:
        user = current_user(db)
        unsave(db, user.id, saved_id)
        if slug:
            return redirect(url_for("public_ui.recipe_detail", slug=slug))
        return redirect(url_for("account_ui.saved"))
    finally:
        db.close()
