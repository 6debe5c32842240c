from resepi import counters
from resepi.models import Recipe


def _user_headers(u):
    return {"X-User-Role": "user", "X-User-Id": str(u.id)}


def test_like_status_anonymous(client, make_recipe):
    r = make_recipe()
    resp = client.get(f"/api/likes/{r.id}")
    assert resp.get_json() == {"likeCount": 0, "alreadyLiked": False}


def test_like_then_duplicate(client, make_user, make_recipe):
    u = make_user()
    r = make_recipe()
    resp = client.post(f"/api/likes/{r.id}", headers=_user_headers(u))
    assert resp.status_code == 200
    assert resp.get_json() == {"likeCount": 1, "alreadyLiked": True}
    resp = client.post(f"/api/likes/{r.id}", headers=_user_headers(u))
    assert resp.status_code == 400
    assert resp.get_json()["detail"] == "already_liked"
    resp = client.get(f"/api/likes/{r.id}", headers=_user_headers(u))
    assert resp.get_json() == {"likeCount": 1, "alreadyLiked": True}


def test_like_requires_login(client, make_recipe):
    r = make_recipe()
    assert client.post(f"/api/likes/{r.id}").status_code == 401


def test_like_unknown_recipe(client, make_user):
    u = make_user()
    assert client.post("/api/likes/4242", headers=_user_headers(u)).status_code == 404


def test_two_users_like_counts(client, make_user, make_recipe):
    r = make_recipe()
    for _ in range(2):
        client.post(f"/api/likes/{r.id}", headers=_user_headers(make_user()))
    assert client.get(f"/api/likes/{r.id}").get_json()["likeCount"] == 2


def test_views_buffered_until_flush(app, client, db, make_recipe):
    r = make_recipe(title="Nasi Lemak")
    for _ in range(3):
        assert client.get("/resepi/nasi-lemak").status_code == 200
    assert counters.pending_views(r.id) == 3
    db.expire_all()
    assert db.get(Recipe, r.id).view_count == 0
    assert counters.total_views(db.get(Recipe, r.id)) == 3

    assert counters.flush_view_counters(db) == 1
    db.expire_all()
    recipe = db.get(Recipe, r.id)
    assert recipe.view_count == 3
    assert counters.pending_views(r.id) == 0
    assert counters.total_views(recipe) == 3


def test_flush_skips_malformed_fields(db, make_recipe):
    r = make_recipe()
    store = counters.get_store()
    store.incr(counters.VIEWS_KEY, "bukan-id", 5)
    store.incr(counters.VIEWS_KEY, str(r.id), 2)
    assert counters.flush_view_counters(db) == 1


def test_draft_views_not_counted(client, admin_headers, make_recipe):
    r = make_recipe(title="Draf Rahsia", status="DRAFT")
    assert client.get("/resepi/draf-rahsia", headers=admin_headers).status_code == 200
    assert counters.pending_views(r.id) == 0


def test_memory_store_drain_is_atomic_snapshot():
    store = counters.MemoryCounterStore()
    store.incr("k", "1")
    store.incr("k", "1", 4)
    assert store.get("k", "1") == 5
    assert store.drain("k") == {"1": 5}
    assert store.drain("k") == {}
