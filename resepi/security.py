"""Security middleware and helpers.

Features:
 - CORS allow-list.
 - CSRF double-submit cookie: the csrf_token cookie must match the X-CSRF-Token
   header (fetch calls) or the csrf_token form field (HTML forms).
 - Security headers (HSTS, CSP, Referrer-Policy, Permissions-Policy).
 - Counters for blocked CSRF attempts.

CSRF Policy:
 - SAFE methods always allowed.
 - /healthz exempt.
 - TESTING bypasses the check unless STRICT_CSRF_IN_TESTS is set.
 - Denials return RFC7807 problem+json (API) with reason in `detail`.
"""

from __future__ import annotations

import os
import secrets

from flask import Flask, g, make_response, request
from opentelemetry import metrics

from .http_errors import csrf_invalid

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
EXEMPT_PREFIXES = ("/healthz",)

CSRF_FIELD = "csrf_token"

_CSRF_COUNTERS = {"missing": 0, "mismatch": 0}
_csrf_blocked_counter = metrics.get_meter(__name__).create_counter(
    name="security.csrf_blocked_total",
    description="Count of blocked CSRF-modifying requests by reason",
    unit="1",
)


def set_secure_cookie(resp, name: str, value: str, *, httponly: bool = True, samesite: str = "Lax") -> None:
    from flask import current_app

    # Secure everywhere except local DEBUG/TESTING runs
    secure_flag = not (current_app.config.get("DEBUG") or current_app.config.get("TESTING"))
    resp.set_cookie(name, value, secure=secure_flag, httponly=httponly, samesite=samesite, path="/")


def _is_testing(app: Flask) -> bool:
    return bool(app.config.get("TESTING") or os.getenv("PYTEST_CURRENT_TEST"))


def _validate_cors(app: Flask, resp):
    allowed: list[str] = app.config.get("CORS_ALLOWED_ORIGINS", []) or []
    origin = request.headers.get("Origin")
    if not allowed or not origin:
        return resp
    if origin in allowed:
        resp.headers.setdefault("Vary", "Origin")
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
        req_hdrs = request.headers.get("Access-Control-Request-Headers")
        if req_hdrs:
            resp.headers["Access-Control-Allow-Headers"] = req_hdrs
        resp.headers["Access-Control-Allow-Credentials"] = "true"
        resp.headers["Access-Control-Max-Age"] = "600"
    return resp


def current_csrf_token() -> str:
    """Token templates embed in forms; minted on first use and set as a cookie after the request."""
    from flask import current_app

    cookie_name = current_app.config.get("CSRF_COOKIE_NAME", "csrf_token")
    existing = request.cookies.get(cookie_name)
    if existing:
        return existing
    if not hasattr(g, "_new_csrf_token"):
        g._new_csrf_token = secrets.token_hex(16)
    return g._new_csrf_token


def _block(reason: str):
    _CSRF_COUNTERS[reason] += 1
    _csrf_blocked_counter.add(1, {"reason": reason})
    return csrf_invalid()


def _csrf_check(app: Flask):
    if not app.config.get("ENABLE_CSRF", True):
        return None
    if _is_testing(app) and not app.config.get("STRICT_CSRF_IN_TESTS"):
        return None
    if request.method.upper() in SAFE_METHODS:
        return None
    path = request.path or "/"
    if any(path.startswith(p) for p in EXEMPT_PREFIXES):
        return None
    cookie_name = app.config.get("CSRF_COOKIE_NAME", "csrf_token")
    header_name = app.config.get("CSRF_HEADER_NAME", "X-CSRF-Token")
    sent_cookie = request.cookies.get(cookie_name)
    candidate = request.headers.get(header_name) or request.form.get(CSRF_FIELD)
    if not sent_cookie or not candidate:
        if app.config.get("DEBUG"):
            app.logger.info({"csrf_debug": True, "reason": "missing", "path": path})
        return _block("missing")
    if not secrets.compare_digest(sent_cookie, candidate):
        if app.config.get("DEBUG"):
            app.logger.info({"csrf_debug": True, "reason": "mismatch", "path": path})
        return _block("mismatch")
    return None


def init_security(app: Flask):
    @app.before_request
    def _security_before_request():
        fail = _csrf_check(app)
        if fail is not None:
            return fail
        return None

    @app.after_request
    def _security_after_request(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        resp.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if not app.config.get("TESTING") and not app.config.get("DEBUG"):
            resp.headers.setdefault(
                "Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload"
            )
        resp.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; img-src 'self' data:; object-src 'none'; base-uri 'self'; frame-ancestors 'none'",
        )
        if hasattr(g, "_new_csrf_token"):
            cookie_name = app.config.get("CSRF_COOKIE_NAME", "csrf_token")
            # Readable by page scripts so fetch() can mirror it into X-CSRF-Token
            set_secure_cookie(resp, cookie_name, g._new_csrf_token, httponly=False, samesite="Lax")
        return _validate_cors(app, resp)

    @app.route("/", methods=["OPTIONS"], defaults={"path": ""})
    @app.route("/<path:path>", methods=["OPTIONS"])
    def _cors_preflight(path=""):
        return _validate_cors(app, make_response(""))

    return app
