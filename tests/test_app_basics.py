from datetime import datetime, timedelta

import pytest

from resepi.audit_events import list_audit_events
from resepi.pagination import PaginationError, lenient_page, pager, parse_page_params
from resepi.template_helpers import difficulty_label, format_date, format_minutes, is_older_than_one_week, serving_label


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "db": "ok"}


def test_api_404_is_problem_json(client):
    resp = client.get("/api/tiada")
    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["detail"] == "not_found"
    assert body["type"].endswith("/not_found")
    assert body["request_id"] == resp.headers["X-Request-Id"]
    assert list_audit_events("problem_response")[0]["meta"]["status"] == 404


def test_html_404_renders_page(client):
    resp = client.get("/halaman-tiada")
    assert resp.status_code == 404
    assert "text/html" in resp.content_type


def test_wrong_method_on_api_reads_as_404(client):
    assert client.put("/api/search").status_code == 404


def test_security_headers_and_request_id(client):
    resp = client.get("/", headers={"X-Request-Id": "abc-123"})
    assert resp.headers["X-Request-Id"] == "abc-123"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert "default-src 'self'" in resp.headers["Content-Security-Policy"]
    assert "Strict-Transport-Security" not in resp.headers
    assert client.get("/api/search").headers["Cache-Control"] == "no-store"


def test_csrf_enforced_when_strict(app, client):
    app.config["STRICT_CSRF_IN_TESTS"] = True
    resp = client.post("/api/newsletter/subscribe", json={"email": "a@example.com"})
    assert resp.status_code == 403
    assert resp.get_json()["detail"] == "invalid_csrf"

    client.get("/")
    token = client.get_cookie("csrf_token").value
    resp = client.post("/api/newsletter/subscribe", json={"email": "a@example.com"}, headers={"X-CSRF-Token": "salah"})
    assert resp.status_code == 403
    resp = client.post("/api/newsletter/subscribe", json={"email": "a@example.com"}, headers={"X-CSRF-Token": token})
    assert resp.status_code == 201
    resp = client.post("/hubungi-kami", data={"name": "A", "email": "a@example.com", "message": "m", "csrf_token": token})
    assert resp.status_code == 302


def test_cors_allow_list(app, client):
    app.config["CORS_ALLOWED_ORIGINS"] = ["https://app.resepichenom.com"]
    resp = client.options("/api/search", headers={"Origin": "https://app.resepichenom.com"})
    assert resp.headers["Access-Control-Allow-Origin"] == "https://app.resepichenom.com"
    resp = client.options("/api/search", headers={"Origin": "https://jahat.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers


def test_page_params():
    assert parse_page_params({}) == {"page": 1, "size": 12}
    assert parse_page_params({"page": "2", "size": "500"}) == {"page": 2, "size": 100}
    with pytest.raises(PaginationError):
        parse_page_params({"page": "x"})
    with pytest.raises(PaginationError):
        parse_page_params({"size": "0"})


def test_lenient_page_and_pager():
    assert lenient_page(None) == 1
    assert lenient_page("abc") == 1
    assert lenient_page("0") == 1
    assert lenient_page(" 3 ") == 3
    assert pager(2, 25, 12) == {"page": 2, "pages": 3, "total": 25}


def test_audit_events_endpoint_rejects_bad_page(client, admin_headers):
    resp = client.get("/api/admin/audit-events?page=x", headers=admin_headers)
    assert resp.status_code == 400


def test_template_filters():
    assert format_minutes(None) == "-"
    assert format_minutes(45) == "45 minit"
    assert format_minutes(120) == "2 jam"
    assert format_minutes(135) == "2 jam 15 minit"
    assert format_date(datetime(2024, 8, 31)) == "31 Ogos 2024"
    assert difficulty_label("EXPERT") == "Pakar"
    assert difficulty_label("ANEH") == "ANEH"
    assert serving_label("BOWLS") == "mangkuk"
    now = datetime(2024, 1, 10)
    assert is_older_than_one_week(now - timedelta(days=8), now) is True
    assert is_older_than_one_week(now - timedelta(days=2), now) is False
    assert is_older_than_one_week(None) is True
