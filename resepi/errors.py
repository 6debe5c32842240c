"""Domain error system + RFC7807 handler registration.

API paths (/api/...) always answer with problem+json. Page routes render an
error template instead, and a missing session on a page redirects to sign-in.
"""
from __future__ import annotations

import traceback
import uuid
from typing import Any

from flask import redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException

from .app_authz import AuthzError
from .app_sessions import SessionError
from .audit_events import record_audit_event
from .http_errors import (
    bad_request,
    forbidden,
    internal_server_error,
    not_found,
    problem_for_status,
    too_many_requests,
    unauthorized,
    unprocessable_entity,
)
from .pagination import PaginationError
from .rate_limiter import RateLimitError


class DomainError(Exception):
    def __init__(self, status: int, code: str, detail: str | None = None, **extra: Any):
        self.status = status
        self.code = code
        self.detail = detail or code
        self.extra = extra
        super().__init__(self.detail)


class ValidationError(DomainError):
    """422 carrying a list of {field, message} entries."""

    def __init__(self, errors: Any, detail: str = "validation_error", **extra: Any):
        if isinstance(errors, str):
            errors = [{"field": None, "message": errors}]
        super().__init__(422, "validation_error", detail, errors=errors, **extra)
        self.errors = errors

    def field_messages(self) -> dict[str, str]:
        return {str(e.get("field") or "_"): str(e.get("message")) for e in self.errors}


class NotFoundError(DomainError):
    def __init__(self, detail: str = "not_found", **extra: Any):
        super().__init__(404, "not_found", detail, **extra)


class ConflictError(DomainError):
    def __init__(self, detail: str = "conflict", **extra: Any):
        super().__init__(409, "conflict", detail, **extra)


class UpstreamError(DomainError):
    """External service (LLM, mail) failed or answered with something unusable."""

    def __init__(self, detail: str = "upstream_error", **extra: Any):
        super().__init__(502, "upstream_error", detail, **extra)


def wants_html() -> bool:
    path = request.path or "/"
    if path.startswith("/api/") or path.startswith("/healthz") or request.is_json:
        return False
    return True


def _emit_problem(resp_payload: dict[str, Any]) -> None:
    record_audit_event(
        "problem_response",
        type=resp_payload.get("type"),
        status=resp_payload.get("status"),
        detail=resp_payload.get("detail"),
        path=request.path,
    )


def _html_error(status: int, detail: str, retry_after: int | None = None) -> tuple[str, int, dict[str, str]]:
    headers = {"Retry-After": str(int(retry_after))} if retry_after is not None else {}
    vm = {"status": status, "detail": detail, "retry_after": retry_after}
    return render_template("error.html", vm=vm), status, headers


def register_error_handlers(app: Any) -> None:

    @app.errorhandler(SessionError)
    def _h_session(err: SessionError):
        if wants_html():
            return redirect(url_for("auth.signin", next=request.full_path.rstrip("?")))
        resp = unauthorized(detail=str(err) or "authentication_required")
        _emit_problem(resp.get_json())
        return resp

    @app.errorhandler(AuthzError)
    def _h_authz(err: AuthzError):
        if wants_html():
            return _html_error(403, str(err) or "forbidden")
        extra = {"required_role": err.required} if err.required else {}
        resp = forbidden(detail=str(err) or "forbidden", **extra)
        _emit_problem(resp.get_json())
        return resp

    @app.errorhandler(DomainError)
    def _h_domain(err: DomainError):
        if wants_html():
            return _html_error(err.status, err.detail, err.extra.get("retry_after"))
        extra = dict(err.extra)
        if err.status == 422:
            resp = unprocessable_entity(extra.pop("errors", None) or [], detail=err.detail, **extra)
        elif err.status == 429:
            resp = too_many_requests(detail=err.detail, **extra)
        else:
            resp = problem_for_status(err.status, err.detail, **extra)
        _emit_problem(resp.get_json())
        return resp

    @app.errorhandler(RateLimitError)
    def _h_rate_limit(ex: RateLimitError):
        if wants_html():
            return _html_error(429, "rate_limited", ex.retry_after)
        resp = too_many_requests(detail="rate_limited", retry_after=ex.retry_after, limit=ex.limit)
        _emit_problem(resp.get_json())
        return resp

    @app.errorhandler(PaginationError)
    def _h_pagination(err: PaginationError):
        if wants_html():
            return _html_error(400, str(err))
        resp = bad_request(detail=str(err) or "bad_request")
        _emit_problem(resp.get_json())
        return resp

    @app.errorhandler(HTTPException)
    def _h_http(ex: HTTPException):
        status = ex.code or 500
        if status == 405:
            # Unknown method on a known path reads as a missing route to clients
            status = 404
        if wants_html():
            return _html_error(status, ex.description or "")
        if status == 404:
            resp = not_found()
        elif status >= 500:
            resp = internal_server_error()
        else:
            resp = problem_for_status(status, ex.description)
        _emit_problem(resp.get_json())
        return resp

    @app.errorhandler(Exception)
    def _h_exception(ex: Exception):
        incident_id = str(uuid.uuid4())
        app.logger.error(
            "Unhandled exception incident_id=%s path=%s\n%s", incident_id, request.path, traceback.format_exc()
        )
        record_audit_event("incident", incident_id=incident_id, path=request.path)
        if wants_html():
            return render_template("error.html", vm={"status": 500, "detail": "internal_error", "incident_id": incident_id}), 500
        resp = internal_server_error(incident_id=incident_id)
        _emit_problem(resp.get_json())
        return resp


__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
    "register_error_handlers",
    "wants_html",
]
