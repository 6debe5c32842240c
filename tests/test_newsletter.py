import csv
import io

from resepi import newsletter_service
from resepi.mailer import MailError
from resepi.models import Subscriber


def _token(mail) -> str:
    return mail.text.rsplit("token=", 1)[1].strip()


def test_subscribe_then_verify_page(client, db, outbox):
    resp = client.post("/api/newsletter/subscribe", json={"email": " Ahmad@Example.com "})
    assert resp.status_code == 201
    assert outbox[0].to == "ahmad@example.com"
    assert "/newsletter/verify?token=" in outbox[0].text

    resp = client.get(f"/newsletter/verify?token={_token(outbox[0])}")
    assert resp.status_code == 200
    sub = db.query(Subscriber).one()
    assert sub.is_verified is True
    assert sub.verification_token is None
    assert sub.verified_at is not None

    resp = client.post("/api/newsletter/subscribe", json={"email": "ahmad@example.com"})
    assert resp.status_code == 409


def test_resubscribe_unverified_rotates_token(client, db, outbox):
    client.post("/api/newsletter/subscribe", json={"email": "a@example.com"})
    client.post("/api/newsletter/subscribe", json={"email": "a@example.com"})
    assert db.query(Subscriber).count() == 1
    first, second = _token(outbox[0]), _token(outbox[1])
    assert first != second
    assert client.get(f"/api/newsletter/verify?token={first}").status_code == 400
    assert client.get(f"/api/newsletter/verify?token={second}").get_json() == {"ok": True, "email": "a@example.com"}


def test_subscribe_rejects_bad_email(client, outbox):
    resp = client.post("/api/newsletter/subscribe", json={"email": "bukan emel"})
    assert resp.status_code == 422
    assert outbox == []


def test_subscribe_from_plain_form(client):
    resp = client.post("/api/newsletter/subscribe", data={"email": "borang@example.com"})
    assert resp.status_code == 201


def test_verify_without_token(client):
    resp = client.get("/newsletter/verify")
    assert resp.status_code == 400
    assert "Tiada token pengesahan disediakan." in resp.get_data(as_text=True)


def test_admin_endpoints_require_admin(client, make_user):
    assert client.get("/api/newsletter/subscribers").status_code == 401
    u = make_user()
    resp = client.get("/api/newsletter/subscribers", headers={"X-User-Role": "user", "X-User-Id": str(u.id)})
    assert resp.status_code == 403
    assert resp.get_json()["required_role"] == "admin"


def test_admin_crud_and_filters(client, admin_headers):
    resp = client.post("/api/newsletter/subscribers", json={"email": "sah@example.com", "isVerified": True}, headers=admin_headers)
    assert resp.status_code == 201
    verified_id = resp.get_json()["subscriber"]["id"]
    client.post("/api/newsletter/subscribers", json={"email": "tunggu@example.com"}, headers=admin_headers)
    dup = client.post("/api/newsletter/subscribers", json={"email": "SAH@example.com"}, headers=admin_headers)
    assert dup.status_code == 409

    data = client.get("/api/newsletter/subscribers?status=verified", headers=admin_headers).get_json()
    assert [s["email"] for s in data["items"]] == ["sah@example.com"]
    data = client.get("/api/newsletter/subscribers?status=pending", headers=admin_headers).get_json()
    assert [s["email"] for s in data["items"]] == ["tunggu@example.com"]
    data = client.get("/api/newsletter/subscribers?search=tung", headers=admin_headers).get_json()
    assert data["total"] == 1

    resp = client.put(
        f"/api/newsletter/subscribers/{verified_id}", json={"email": "baru@example.com", "isVerified": False}, headers=admin_headers
    )
    sub = resp.get_json()["subscriber"]
    assert sub["email"] == "baru@example.com"
    assert sub["isVerified"] is False
    assert sub["verifiedAt"] is None

    assert client.delete(f"/api/newsletter/subscribers/{verified_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/newsletter/subscribers/{verified_id}", headers=admin_headers).status_code == 404


def test_csv_export(client, admin_headers):
    client.post("/api/newsletter/subscribers", json={"email": "sah@example.com", "isVerified": True}, headers=admin_headers)
    client.post("/api/newsletter/subscribers", json={"email": "tunggu@example.com"}, headers=admin_headers)
    resp = client.get("/api/newsletter/subscribers/export.csv", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert "attachment; filename=\"subscribers-" in resp.headers["Content-Disposition"]
    rows = list(csv.reader(io.StringIO(resp.get_data(as_text=True))))
    assert rows[0] == ["Email", "Status", "Subscription Date", "Verification Date"]
    by_email = {r[0]: r for r in rows[1:]}
    assert by_email["sah@example.com"][1] == "Verified"
    assert by_email["tunggu@example.com"][1] == "Pending"
    assert by_email["tunggu@example.com"][3] == "-"


def test_update_to_another_subscribers_email_conflicts(client, db, admin_headers):
    first = client.post("/api/newsletter/subscribers", json={"email": "a@example.com"}, headers=admin_headers)
    second = client.post("/api/newsletter/subscribers", json={"email": "b@example.com"}, headers=admin_headers)
    b_id = second.get_json()["subscriber"]["id"]
    resp = client.put(f"/api/newsletter/subscribers/{b_id}", json={"email": "A@example.com"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()["detail"] == "already_subscribed"
    # keeping its own address is not a conflict
    resp = client.put(
        f"/api/newsletter/subscribers/{b_id}", json={"email": "b@example.com", "isVerified": True}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert first.status_code == 201
    assert sorted(s.email for s in db.query(Subscriber).all()) == ["a@example.com", "b@example.com"]


def test_subscribe_mail_failure_rolls_back(client, db, outbox, monkeypatch):
    real_send = newsletter_service.send_newsletter_verification
    provider = {"up": False}

    def flaky(email, token):
        if not provider["up"]:
            raise MailError("ses down")
        real_send(email, token)

    monkeypatch.setattr(newsletter_service, "send_newsletter_verification", flaky)
    resp = client.post("/api/newsletter/subscribe", json={"email": "gagal@example.com"})
    assert resp.status_code == 502
    assert resp.get_json()["detail"] == "mail_failed"
    assert db.query(Subscriber).count() == 0

    provider["up"] = True
    resp = client.post("/api/newsletter/subscribe", json={"email": "gagal@example.com"})
    assert resp.status_code == 201
    assert outbox[-1].to == "gagal@example.com"
