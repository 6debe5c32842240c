from resepi.models import SavedRecipe, User

PASSWORD = "Rahsia123"


def _h(u):
    return {"X-User-Role": u.role, "X-User-Id": str(u.id)}


def test_account_pages_redirect_anonymous_to_signin(client):
    resp = client.get("/account/")
    assert resp.status_code == 302
    assert "/auth/signin" in resp.headers["Location"]
    assert "next=" in resp.headers["Location"]


def test_account_pages_render(client, make_user, make_recipe):
    u = make_user()
    for path in ("/account/", "/account/profile", "/account/security", "/account/notifications", "/account/saved"):
        assert client.get(path, headers=_h(u)).status_code == 200, path


def test_update_profile_json(client, make_user):
    u = make_user()
    make_user(username="diambil")
    resp = client.put("/api/account/profile", json={"name": "Nama Baru", "username": "baru", "bio": " Suka masak "}, headers=_h(u))
    assert resp.status_code == 200
    data = resp.get_json()["user"]
    assert data["username"] == "baru"
    assert data["bio"] == "Suka masak"
    resp = client.put("/api/account/profile", json={"name": "X", "username": "DIAMBIL"}, headers=_h(u))
    assert resp.status_code == 409
    resp = client.put("/api/account/profile", json={"name": "X", "username": "a b"}, headers=_h(u))
    assert resp.status_code == 422


def test_profile_form_username_taken(client, make_user):
    u = make_user()
    make_user(username="diambil")
    resp = client.post("/account/profile", data={"name": "X", "username": "diambil", "bio": ""}, headers=_h(u))
    assert resp.status_code == 409
    assert "Nama pengguna telah digunakan." in resp.get_data(as_text=True)


def test_change_password(client, db, make_user):
    u = make_user()
    resp = client.post(
        "/api/account/password",
        json={"currentPassword": "salah", "newPassword": "Baru12345", "confirmPassword": "Lain12345"},
        headers=_h(u),
    )
    assert resp.status_code == 422
    fields = {e["field"] for e in resp.get_json()["errors"]}
    assert fields == {"currentPassword", "confirmPassword"}
    resp = client.post(
        "/api/account/password",
        json={"currentPassword": PASSWORD, "newPassword": "Baru12345", "confirmPassword": "Baru12345"},
        headers=_h(u),
    )
    assert resp.status_code == 200
    client.post("/auth/logout", json={})
    assert client.post("/auth/signin", json={"email": u.email, "password": "Baru12345"}).status_code == 200


def test_notifications_form_checkboxes(client, db, make_user):
    u = make_user(subscribe_comment_reply=True, subscribe_newsletter=True)
    resp = client.post("/account/notifications", data={"subscribeNewsletter": "on"}, headers=_h(u))
    assert resp.status_code == 302
    db.expire_all()
    user = db.get(User, u.id)
    assert user.subscribe_comment_reply is False
    assert user.subscribe_newsletter is True


def test_saved_recipes_api(client, db, make_user, make_recipe):
    u = make_user()
    other = make_user()
    r = make_recipe(title="Kari Kepala Ikan")
    resp = client.post("/api/account/saved", json={"recipeId": r.id}, headers=_h(u))
    assert resp.status_code == 201
    saved_id = resp.get_json()["saved"]["id"]
    # idempotent
    again = client.post("/api/account/saved", json={"recipeId": r.id}, headers=_h(u))
    assert again.get_json()["saved"]["id"] == saved_id

    resp = client.patch(f"/api/account/saved/{saved_id}", json={"notes": "kurangkan cili"}, headers=_h(u))
    assert resp.get_json()["saved"]["notes"] == "kurangkan cili"

    items = client.get("/api/account/saved", headers=_h(u)).get_json()["items"]
    assert [i["recipe"]["slug"] for i in items] == ["kari-kepala-ikan"]

    # another user cannot touch it
    assert client.delete(f"/api/account/saved/{saved_id}", headers=_h(other)).status_code == 404
    assert client.delete(f"/api/account/saved/{saved_id}", headers=_h(u)).status_code == 200
    assert db.query(SavedRecipe).count() == 0


def test_save_from_recipe_page_form(client, db, make_user, make_recipe):
    u = make_user()
    r = make_recipe(title="Ikan Bakar")
    resp = client.post("/account/saved", data={"recipe_id": str(r.id), "slug": r.slug}, headers=_h(u))
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/resepi/ikan-bakar")
    row = db.query(SavedRecipe).one()
    body = client.get("/resepi/ikan-bakar", headers=_h(u)).get_data(as_text=True)
    assert f"/account/saved/{row.id}/delete" in body
    body = client.get("/account/saved", headers=_h(u)).get_data(as_text=True)
    assert "Ikan Bakar" in body
