"""RFC7807 problem+json responses.

Every JSON error leaves through ``problem``. ``type`` is a stable URL per error kind
under https://resepichenom.com/errors/, ``detail`` is the machine code the front-end
switches on, and the request id is echoed so support can find the log line.
"""
from __future__ import annotations

import uuid

from flask import g, jsonify
from werkzeug.wrappers.response import Response

TYPE_BASE = "https://resepichenom.com/errors/"

# status -> (type slug, title)
PROBLEM_KINDS: dict[int, tuple[str, str]] = {
    400: ("bad_request", "Bad Request"),
    401: ("unauthorized", "Unauthorized"),
    403: ("forbidden", "Forbidden"),
    404: ("not_found", "Not Found"),
    409: ("conflict", "Conflict"),
    413: ("payload_too_large", "Payload Too Large"),
    422: ("validation_error", "Unprocessable Entity"),
    429: ("rate_limited", "Too Many Requests"),
    500: ("internal_error", "Internal Server Error"),
    502: ("upstream_error", "Bad Gateway"),
}


def problem(status: int, slug: str, title: str, detail: str, **extra: object) -> Response:
    body: dict[str, object] = {"type": TYPE_BASE + slug, "title": title, "status": status, "detail": detail}
    rid = getattr(g, "request_id", None)
    if rid:
        body["request_id"] = rid
    body.update({k: v for k, v in extra.items() if v is not None})
    resp = jsonify(body)
    resp.status_code = status
    resp.mimetype = "application/problem+json"
    if rid:
        resp.headers.setdefault("X-Request-Id", rid)
    return resp


def problem_for_status(status: int, detail: str | None = None, **extra: object) -> Response:
    """Problem for any status; unknown 4xx borrow the 400 kind, unknown 5xx the 500 kind."""
    fallback = 500 if status >= 500 else 400
    slug, title = PROBLEM_KINDS.get(status, PROBLEM_KINDS[fallback])
    return problem(status, slug, title, detail or slug, **extra)


def bad_request(detail: str = "bad_request", **extra: object) -> Response:
    return problem_for_status(400, detail, **extra)


def unauthorized(detail: str = "unauthorized", **extra: object) -> Response:
    return problem_for_status(401, detail, **extra)


def forbidden(detail: str = "forbidden", **extra: object) -> Response:
    return problem_for_status(403, detail, **extra)


def csrf_invalid(reason: str = "invalid_csrf") -> Response:
    return problem(403, "csrf_invalid", "Forbidden", reason)


def not_found(detail: str = "not_found", **extra: object) -> Response:
    return problem_for_status(404, detail, **extra)


def conflict(detail: str = "conflict", **extra: object) -> Response:
    return problem_for_status(409, detail, **extra)


def unprocessable_entity(errors: list[dict[str, object]], detail: str = "validation_error", **extra: object) -> Response:
    return problem_for_status(422, detail, errors=errors, **extra)


def too_many_requests(detail: str = "rate_limited", retry_after: int | None = None, **extra: object) -> Response:
    resp = problem_for_status(429, detail, retry_after=retry_after, **extra)
    if retry_after is not None:
        resp.headers["Retry-After"] = str(int(retry_after))
    return resp


def bad_gateway(detail: str = "upstream_error", **extra: object) -> Response:
    return problem_for_status(502, detail, **extra)


def internal_server_error(detail: str = "internal_error", incident_id: str | None = None, **extra: object) -> Response:
    return problem_for_status(500, detail, incident_id=incident_id or str(uuid.uuid4()), **extra)


__all__ = [
    "PROBLEM_KINDS",
    "problem",
    "problem_for_status",
    "bad_request",
    "unauthorized",
    "forbidden",
    "csrf_invalid",
    "not_found",
    "conflict",
    "unprocessable_entity",
    "too_many_requests",
    "bad_gateway",
    "internal_server_error",
]
