"""Newsletter signup + verification, and the admin subscriber endpoints."""
from __future__ import annotations

from flask import Blueprint, Response, jsonify, render_template, request

from .app_authz import require_roles
from .db import get_session
from .errors import DomainError
from .http_limits import limit
from .models import Subscriber
from .newsletter_service import (
    add_subscriber,
    delete_subscriber,
    export_csv,
    export_filename,
    list_subscribers,
    serialize_subscriber,
    subscribe,
    update_subscriber,
    verify,
)
from .pagination import lenient_page, page_count
from .telemetry import track_event

bp = Blueprint("newsletter_api", __name__)

ADMIN_PAGE_SIZE = 20


@bp.post("/api/newsletter/subscribe")
@limit("newsletter_subscribe")
def post_subscribe():
    data = request.get_json(silent=True) or request.form.to_dict()
    db = get_session()
    try:
        subscribe(db, data.get("email"))
        track_event("newsletter_subscribed")
        return jsonify({"ok": True, "message": "Sila semak emel anda untuk mengesahkan langganan."}), 201
    finally:
        db.close()


@bp.get("/api/newsletter/verify")
def api_verify():
    db = get_session()
    try:
        sub = verify(db, request.args.get("token"))
        return jsonify({"ok": True, "email": sub.email})
    finally:
        db.close()


@bp.get("/newsletter/verify")
def verify_page():
    db = get_session()
    try:
        try:
            sub = verify(db, request.args.get("token"))
        except DomainError as e:
            return render_template("newsletter_verify.html", vm={"ok": False, "message": e.detail}), 400
        return render_template("newsletter_verify.html", vm={"ok": True, "email": sub.email})
    finally:
        db.close()


# ---- Admin ----

@bp.get("/api/newsletter/subscribers")
@require_roles("admin")
def get_subscribers():
    page = lenient_page(request.args.get("page"))
    db = get_session()
    try:
        rows, total = list_subscribers(
            db, request.args.get("search"), request.args.get("status"), page, ADMIN_PAGE_SIZE
        )
        return jsonify(
            {
                "items": [serialize_subscriber(s) for s in rows],
                "total": total,
                "pages": page_count(total, ADMIN_PAGE_SIZE),
                "currentPage": page,
            }
        )
    finally:
        db.close()


@bp.post("/api/newsletter/subscribers")
@require_roles("admin")
def post_subscriber():
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        sub = add_subscriber(db, data.get("email"), bool(data.get("isVerified")))
        return jsonify({"ok": True, "subscriber": serialize_subscriber(sub)}), 201
    finally:
        db.close()


@bp.put("/api/newsletter/subscribers/<int:subscriber_id>")
@require_roles("admin")
def put_subscriber(subscriber_id: int):
    data = request.get_json(silent=True) or {}
    db = get_session()
    try:
        sub = update_subscriber(db, subscriber_id, data.get("email"), bool(data.get("isVerified")))
        return jsonify({"ok": True, "subscriber": serialize_subscriber(sub)})
    finally:
        db.close()


@bp.delete("/api/newsletter/subscribers/<int:subscriber_id>")
@require_roles("admin")
def remove_subscriber(subscriber_id: int):
    db = get_session()
    try:
        delete_subscriber(db, subscriber_id)
        return jsonify({"ok": True})
    finally:
        db.close()


@bp.get("/api/newsletter/subscribers/export.csv")
@require_roles("admin")
def export_subscribers():
    db = get_session()
    try:
        rows = db.query(Subscriber).order_by(Subscriber.created_at.desc(), Subscriber.id.desc()).all()
        body = export_csv(rows)
    finally:
        db.close()
    track_event("newsletter_exported")
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )
