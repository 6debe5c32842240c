"""Sign-up, sign-in and the email token flows (verify, forgot/reset password).

Every route answers both HTML forms and JSON bodies: JSON callers get
problem+json errors through the central handlers, form posts re-render the page
with field messages.
"""
from __future__ import annotations

from typing import Any

from flask import Blueprint, redirect, render_template, request, session, url_for

from .account_service import (
    authenticate,
    forgot_password,
    register,
    resend_verification,
    reset_password,
    verify_email,
)
from .app_authz import AuthzError
from .app_sessions import clear_login, persist_login
from .db import get_session
from .errors import DomainError, ValidationError
from .http_limits import limit
from .mailer import MAIL_FAILED_MESSAGE
from .rate_limiter import RateLimitError

bp = Blueprint("auth", __name__, url_prefix="/auth")

SIGNIN_MESSAGES = {
    "invalid_credentials": "Emel atau kata laluan tidak betul.",
    "account_suspended": "Akaun anda telah digantung.",
    "rate_limited": "Terlalu banyak percubaan. Sila cuba sebentar lagi.",
}

FORM_MESSAGES = {
    "mail_failed": MAIL_FAILED_MESSAGE,
    "user_not_found": "Tiada akaun dengan emel ini.",
    "already_verified": "Emel ini telah disahkan. Sila log masuk.",
}


def _payload() -> dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _safe_next(target: str | None) -> str:
    # Only same-site relative paths; anything else lands on the home page
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return url_for("public_ui.index")


def _form_errors(err: DomainError) -> dict[str, str]:
    if isinstance(err, ValidationError):
        return err.field_messages()
    return {"_": FORM_MESSAGES.get(err.detail, err.detail)}


@bp.get("/register")
def register_page():
    return render_template("auth/register.html", vm={"errors": {}, "form": {}})


@bp.post("/register")
@limit("register")
def register_submit():
    data = _payload()
    db = get_session()
    try:
        try:
            user = register(db, data.get("name"), data.get("username"), data.get("email"), data.get("password"))
        except DomainError as e:
            if request.is_json:
                raise
            form = {k: v for k, v in data.items() if k != "password"}
            return render_template("auth/register.html", vm={"errors": _form_errors(e), "form": form}), e.status
        if request.is_json:
            return {"ok": True, "user": {"id": user.id, "email": user.email}}, 201
        return render_template("auth/verify_prompt.html", vm={"email": user.email})
    finally:
        db.close()


@bp.route("/signin", methods=["GET", "POST"])
def signin():
    next_url = request.values.get("next")
    if request.method == "GET":
        return render_template("auth/signin.html", vm={"next": next_url, "error": None, "email": ""})
    data = _payload()
    db = get_session()
    try:
        try:
            user = authenticate(db, data.get("email"), data.get("password"), request.remote_addr)
        except (DomainError, AuthzError, RateLimitError) as e:
            if request.is_json:
                raise
            code = "rate_limited" if isinstance(e, RateLimitError) else getattr(e, "detail", None) or str(e)
            status = getattr(e, "status", 429 if isinstance(e, RateLimitError) else 403)
            vm = {
                "next": next_url,
                "error": SIGNIN_MESSAGES.get(code, SIGNIN_MESSAGES["invalid_credentials"]),
                "email": data.get("email") or "",
            }
            return render_template("auth/signin.html", vm=vm), status
        persist_login(session, user.id, user.role, user.display_name)
        if request.is_json:
            return {"ok": True, "user": {"id": user.id, "role": user.role, "name": user.display_name}}
        return redirect(_safe_next(data.get("next") or next_url))
    finally:
        db.close()


@bp.post("/logout")
def logout():
    clear_login()
    if request.is_json:
        return {"ok": True}
    return redirect(url_for("public_ui.index"))


@bp.get("/verify")
def verify():
    db = get_session()
    try:
        try:
            user = verify_email(db, request.args.get("token"))
        except DomainError:
            return render_template("auth/verify.html", vm={"ok": False}), 400
        return render_template("auth/verify.html", vm={"ok": True, "email": user.email})
    finally:
        db.close()


@bp.get("/resend-verification")
def resend_verification_page():
    email = request.args.get("email") or ""
    return render_template("auth/resend_verification.html", vm={"errors": {}, "sent": False, "email": email})


@bp.post("/resend-verification")
@limit("resend_verification")
def resend_verification_submit():
    data = _payload()
    db = get_session()
    try:
        try:
            resend_verification(db, data.get("email"))
        except DomainError as e:
            if request.is_json:
                raise
            vm = {"errors": _form_errors(e), "sent": False, "email": data.get("email") or ""}
            return render_template("auth/resend_verification.html", vm=vm), e.status
        if request.is_json:
            return {"ok": True}
        return render_template("auth/resend_verification.html", vm={"errors": {}, "sent": True, "email": ""})
    finally:
        db.close()


@bp.get("/forgot-password")
def forgot_password_page():
    return render_template("auth/forgot_password.html", vm={"errors": {}, "sent": False})


@bp.post("/forgot-password")
@limit("forgot_password")
def forgot_password_submit():
    data = _payload()
    db = get_session()
    try:
        try:
            forgot_password(db, data.get("email"))
        except DomainError as e:
            if request.is_json:
                raise
            errors = _form_errors(e)
            if e.status == 404:
                errors = {"email": "Tiada akaun dengan emel ini."}
            return render_template("auth/forgot_password.html", vm={"errors": errors, "sent": False}), e.status
        if request.is_json:
            return {"ok": True}
        return render_template("auth/forgot_password.html", vm={"errors": {}, "sent": True})
    finally:
        db.close()


@bp.route("/reset-password", methods=["GET", "POST"])
def reset_password_page():
    token = request.values.get("token") or ""
    if request.method == "GET":
        return render_template("auth/reset_password.html", vm={"token": token, "errors": {}})
    data = _payload()
    token = data.get("token") or token
    db = get_session()
    try:
        try:
            reset_password(db, token, data.get("password"))
        except DomainError as e:
            if request.is_json:
                raise
            return render_template("auth/reset_password.html", vm={"token": token, "errors": _form_errors(e)}), e.status
        if request.is_json:
            return {"ok": True}
        return redirect(url_for("auth.signin"))
    finally:
        db.close()
