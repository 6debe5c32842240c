"""Flask application factory.

Provides:
 - App factory with configuration override
 - DB engine initialization (+ optional schema creation for tests/dev)
 - Problem+json / HTML error handling
 - Security middleware, request ids and structured request logging
 - Blueprint registration (public pages, auth, account, JSON APIs, admin)
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any

from flask import Flask, g, request, session
from werkzeug.wrappers.response import Response

from .account_api import bp as account_api_bp
from .account_ui import bp as account_ui_bp
from .account_service import ensure_bootstrap_admin
from .admin_api import bp as admin_api_bp
from .admin_ui import bp as admin_ui_bp
from .auth import bp as auth_bp
from .comments_api import bp as comments_api_bp
from .config import Config
from .db import create_all, get_session, init_engine, remove_session
from .errors import register_error_handlers
from .health_api import bp as health_bp
from .likes_api import bp as likes_api_bp
from .limit_registry import refresh as refresh_limits
from .metrics import configure_metrics
from .moderation_api import bp as moderation_api_bp
from .newsletter_api import bp as newsletter_api_bp
from .public_ui import bp as public_ui_bp
from .search_api import bp as search_api_bp
from .security import current_csrf_token, init_security
from .template_helpers import init_template_helpers

log = logging.getLogger("resepi.request")


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    # Ensure Flask can find project-level templates/ and static/
    base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
    app = Flask(
        __name__,
        template_folder=os.path.join(base_dir, "templates"),
        static_url_path="/static",
        static_folder=os.path.join(base_dir, "static"),
    )
    # --- Configuration ---
    cfg = Config.from_env()
    if config_override:
        known = {k: v for k, v in config_override.items() if hasattr(cfg, k)}
        if known:
            cfg.override(known)
    # Resolve stable absolute dev DB path when DATABASE_URL not provided
    if not os.getenv("DATABASE_URL") and cfg.database_url == "sqlite:///dev.db":
        os.makedirs(app.instance_path, exist_ok=True)
        cfg.database_url = f"sqlite:///{os.path.join(app.instance_path, 'dev.db')}"
    app.config.update(cfg.to_flask_dict())
    app.config.setdefault("METRICS_BACKEND", os.getenv("METRICS_BACKEND", "noop"))
    if config_override:
        for k, v in config_override.items():  # also allow direct Flask config keys
            if k.isupper():
                app.config[k] = v

    # --- DB setup ---
    init_engine(app.config["SQLALCHEMY_DATABASE_URI"], force=bool(app.config.get("FORCE_DB_REINIT")))
    if app.config.get("FORCE_DB_REINIT") or os.getenv("DEV_CREATE_ALL", "0") == "1":
        create_all()
    app.logger.info("DB_URL=%s", app.config["SQLALCHEMY_DATABASE_URI"])

    @app.teardown_appcontext
    def _remove_db_session(_exc: BaseException | None) -> None:
        remove_session()

    # --- Security middleware (CORS, CSRF, headers) ---
    init_security(app)

    # --- Metrics + named limits ---
    used = configure_metrics(app.config.get("METRICS_BACKEND"))
    app.logger.info("Metrics backend initialized: %s", used)
    refresh_limits()

    register_error_handlers(app)
    init_template_helpers(app)

    @app.context_processor
    def _inject_globals() -> dict[str, Any]:
        return {
            "csrf_token": current_csrf_token,
            "current_user_id": session.get("user_id"),
            "current_role": session.get("role"),
            "site_url": app.config.get("SITE_URL"),
        }

    @app.before_request
    def _before_req() -> Response | None:
        if app.config.get("TESTING"):
            role = request.headers.get("X-User-Role")
            uid = request.headers.get("X-User-Id")
            if role:
                session["role"] = role
                session["user_id"] = int(uid) if uid and uid.isdigit() else 1
        g._t0 = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        g.user_id = session.get("user_id")
        return None

    @app.after_request
    def _after_req(resp: Response) -> Response:
        dur_ms = int((time.perf_counter() - getattr(g, "_t0", time.perf_counter())) * 1000)
        rid = getattr(g, "request_id", str(uuid.uuid4()))
        resp.headers["X-Request-Id"] = rid
        resp.headers["X-Request-Duration-ms"] = str(dur_ms)
        if request.path.startswith("/api/") and "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = "no-store"
        log.info(
            {
                "request_id": rid,
                "user_id": session.get("user_id"),
                "method": request.method,
                "path": request.path,
                "status": resp.status_code,
                "duration_ms": dur_ms,
            }
        )
        return resp

    # --- Blueprints ---
    app.register_blueprint(public_ui_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(account_ui_bp)
    app.register_blueprint(account_api_bp)
    app.register_blueprint(comments_api_bp)
    app.register_blueprint(likes_api_bp)
    app.register_blueprint(search_api_bp)
    app.register_blueprint(newsletter_api_bp)
    app.register_blueprint(moderation_api_bp)
    app.register_blueprint(admin_api_bp)
    app.register_blueprint(admin_ui_bp)
    app.register_blueprint(health_bp)

    # --- Bootstrap admin (SUPERUSER_EMAIL / SUPERUSER_PASSWORD) ---
    db = get_session()
    try:
        ensure_bootstrap_admin(db)
    finally:
        db.close()

    return app


__all__ = ["create_app"]
