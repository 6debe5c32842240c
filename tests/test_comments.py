from resepi.models import Comment


def _post(client, user, recipe_id, content, parent_id=None, role="user"):
    body = {"recipeId": recipe_id, "content": content}
    if parent_id is not None:
        body["parentId"] = parent_id
    return client.post(
        "/api/comments", json=body, headers={"X-User-Role": role, "X-User-Id": str(user.id)}
    )


def test_comment_requires_login(client, make_recipe):
    r = make_recipe()
    resp = client.post("/api/comments", json={"recipeId": r.id, "content": "Sedap"})
    assert resp.status_code == 401


def test_clean_comment_is_approved(client, make_user, make_recipe):
    u = make_user()
    r = make_recipe()
    resp = _post(client, u, r.id, "Sedap sangat, terima kasih!")
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["ok"] is True
    assert data["isPending"] is False
    assert data["comment"]["status"] == "APPROVED"
    assert data["comment"]["user"]["name"] == u.display_name


def test_spammy_comment_is_held(client, make_user, make_recipe):
    u = make_user()
    r = make_recipe()
    resp = _post(client, u, r.id, "INI RESEPI PALING SEDAP DI DUNIA")
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["isPending"] is True
    assert "uppercase" in data["reason"]


def test_admin_comment_skips_spam_check(client, admin, make_recipe):
    r = make_recipe()
    resp = _post(client, admin, r.id, "INI RESEPI PALING SEDAP DI DUNIA", role="admin")
    assert resp.get_json()["isPending"] is False


def test_empty_and_long_comments_rejected(client, make_user, make_recipe):
    u = make_user()
    r = make_recipe()
    resp = _post(client, u, r.id, "   ")
    assert resp.status_code == 422
    assert resp.get_json()["errors"][0]["field"] == "content"
    resp = _post(client, u, r.id, "a b " * 300)
    assert resp.status_code == 422


def test_recipe_id_must_be_integer(client, make_user):
    u = make_user()
    resp = client.post(
        "/api/comments", json={"recipeId": "1", "content": "hi"}, headers={"X-User-Role": "user", "X-User-Id": str(u.id)}
    )
    assert resp.status_code == 422


def test_unknown_recipe_404(client, make_user):
    u = make_user()
    assert _post(client, u, 9999, "Sedap").status_code == 404


def test_suspended_user_forbidden(client, make_user, make_recipe):
    u = make_user(status="SUSPENDED")
    r = make_recipe()
    assert _post(client, u, r.id, "Sedap").status_code == 403


def test_per_user_comment_rate_limit(client, make_user, make_recipe):
    u = make_user()
    r = make_recipe()
    for i in range(3):
        assert _post(client, u, r.id, f"Komen nombor {i}").status_code == 201
    resp = _post(client, u, r.id, "Satu lagi")
    assert resp.status_code == 429
    assert resp.get_json()["detail"] == "too_many_comments"


def test_parent_must_belong_to_same_recipe(client, make_user, make_recipe, make_comment):
    u = make_user()
    r1 = make_recipe()
    r2 = make_recipe()
    parent = make_comment(r1, u)
    resp = _post(client, u, r2.id, "Balasan", parent_id=parent.id)
    assert resp.status_code == 422
    assert resp.get_json()["errors"][0]["field"] == "parentId"


def test_reply_notifies_parent_author(client, outbox, make_user, make_recipe, make_comment):
    author = make_user(email="asal@example.com")
    replier = make_user(name="Siti")
    r = make_recipe(title="Rendang Tok")
    parent = make_comment(r, author)
    resp = _post(client, replier, r.id, "Setuju!", parent_id=parent.id)
    assert resp.status_code == 201
    assert len(outbox) == 1
    assert outbox[0].to == "asal@example.com"
    assert outbox[0].subject == "Siti membalas komen anda"
    assert "/resepi/rendang-tok#komen" in outbox[0].html


def test_no_notification_when_opted_out_or_self_reply(client, outbox, make_user, make_recipe, make_comment):
    quiet = make_user(subscribe_comment_reply=False)
    other = make_user()
    r = make_recipe()
    parent = make_comment(r, quiet)
    _post(client, other, r.id, "Balas", parent_id=parent.id)
    own = make_comment(r, other)
    _post(client, other, r.id, "Balas sendiri", parent_id=own.id)
    assert outbox == []


def test_threaded_read_only_returns_approved(client, make_user, make_recipe, make_comment):
    u = make_user()
    r = make_recipe()
    top = make_comment(r, u, "Atas")
    reply = make_comment(r, u, "Balasan", parent=top)
    make_comment(r, u, "Balasan kedua", parent=reply)
    make_comment(r, u, "Spam", status="SPAM")
    make_comment(r, u, "Menunggu", status="PENDING", parent=top)
    resp = client.get(f"/api/recipes/{r.id}/comments")
    items = resp.get_json()["items"]
    assert [c["content"] for c in items] == ["Atas"]
    assert [c["content"] for c in items[0]["replies"]] == ["Balasan"]
    assert [c["content"] for c in items[0]["replies"][0]["replies"]] == ["Balasan kedua"]


def test_admin_can_read_every_status(client, admin_headers, make_user, make_recipe, make_comment):
    u = make_user()
    r = make_recipe()
    top = make_comment(r, u, "Atas")
    make_comment(r, u, "Balasan", parent=top)
    make_comment(r, u, "Menunggu", status="PENDING", parent=top)
    make_comment(r, u, "Spam", status="SPAM")
    items = client.get(f"/api/recipes/{r.id}/comments?all=1", headers=admin_headers).get_json()["items"]
    assert [c["content"] for c in items] == ["Spam", "Atas"]
    assert [c["content"] for c in items[1]["replies"]] == ["Balasan", "Menunggu"]
    # ignored for non-admins
    user_headers = {"X-User-Role": "user", "X-User-Id": str(u.id)}
    items = client.get(f"/api/recipes/{r.id}/comments?all=1", headers=user_headers).get_json()["items"]
    assert [c["content"] for c in items] == ["Atas"]


def test_moderation_requires_admin(client, make_user):
    u = make_user()
    resp = client.get("/api/moderation/comments", headers={"X-User-Role": "user", "X-User-Id": str(u.id)})
    assert resp.status_code == 403


def test_moderation_list_and_bulk_approve(client, admin_headers, db, make_user, make_recipe, make_comment):
    u = make_user()
    r = make_recipe()
    c1 = make_comment(r, u, "satu", status="PENDING")
    c2 = make_comment(r, u, "dua", status="PENDING")
    make_comment(r, u, "tiga", status="APPROVED")
    resp = client.get("/api/moderation/comments?status=pending", headers=admin_headers)
    data = resp.get_json()
    assert data["total"] == 2
    assert {c["recipe"]["slug"] for c in data["items"]} == {r.slug}

    resp = client.post(
        "/api/moderation/comments/bulk", json={"commentIds": [c1.id, c2.id], "action": "approve"}, headers=admin_headers
    )
    assert resp.get_json() == {"ok": True, "count": 2}
    db.expire_all()
    assert {c.status for c in db.query(Comment).all()} == {"APPROVED"}


def test_moderation_invalid_status(client, admin_headers):
    resp = client.get("/api/moderation/comments?status=bogus", headers=admin_headers)
    assert resp.status_code == 400


def test_delete_comment_removes_replies(client, admin_headers, db, make_user, make_recipe, make_comment):
    u = make_user()
    r = make_recipe()
    top = make_comment(r, u)
    reply = make_comment(r, u, parent=top)
    make_comment(r, u, parent=reply)
    resp = client.delete(f"/api/moderation/comments/{top.id}", headers=admin_headers)
    assert resp.status_code == 200
    db.expire_all()
    assert db.query(Comment).count() == 0
    assert client.delete(f"/api/moderation/comments/{top.id}", headers=admin_headers).status_code == 404


def test_bulk_without_ids_is_bad_request(client, admin_headers):
    resp = client.post("/api/moderation/comments/bulk", json={"commentIds": [], "action": "approve"}, headers=admin_headers)
    assert resp.status_code == 400
