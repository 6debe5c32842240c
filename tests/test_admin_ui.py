import pytest

from resepi.models import Category, Comment, Recipe, Subscriber


@pytest.fixture
def seeded(make_user, make_recipe, make_comment, make_category):
    u = make_user()
    cat = make_category("Sup")
    r = make_recipe(title="Sup Ekor", category=cat, tags=["Berkuah"])
    make_comment(r, u, "Menunggu semakan", status="PENDING")
    return r


def test_admin_pages_require_admin(client, make_user):
    resp = client.get("/admin/")
    assert resp.status_code == 302
    assert "/auth/signin" in resp.headers["Location"]
    u = make_user()
    resp = client.get("/admin/", headers={"X-User-Role": "user", "X-User-Id": str(u.id)})
    assert resp.status_code == 403
    assert "text/html" in resp.content_type


def test_admin_pages_render(client, admin_headers, seeded):
    paths = [
        "/admin/",
        "/admin/recipes",
        "/admin/recipes?status=PUBLISHED&search=sup",
        "/admin/recipes/new",
        f"/admin/recipes/{seeded.id}/edit",
        f"/admin/recipes/{seeded.id}/images",
        "/admin/categories",
        "/admin/tags",
        "/admin/guides",
        "/admin/guides/new",
        "/admin/moderation",
        "/admin/moderation?status=all",
        "/admin/newsletter",
        "/admin/users",
        "/admin/drafts",
        "/admin/drafts/generate",
        "/admin/audits",
    ]
    for path in paths:
        assert client.get(path, headers=admin_headers).status_code == 200, path


def test_pending_comment_listed_in_moderation(client, admin_headers, seeded):
    body = client.get("/admin/moderation", headers=admin_headers).get_data(as_text=True)
    assert "Menunggu semakan" in body


def test_create_recipe_from_form(client, db, admin_headers, make_category):
    cat = make_category("Lauk")
    form = {
        "title": "Ikan Masak Lemak",
        "categoryId": str(cat.id),
        "difficulty": "EASY",
        "status": "PUBLISHED",
        "prepTime": "10",
        "cookTime": "30 minit",
        "tags": "Ikan, Santan",
        "tips": "Guna ikan segar",
        "section_title": ["Bahan", "Cara", ""],
        "section_type": ["INGREDIENTS", "INSTRUCTIONS", "INGREDIENTS"],
        "section_items": ["1 ekor ikan\n1 cawan santan", "Masak semua", ""],
        "isEditorsPick": "on",
    }
    resp = client.post("/admin/recipes/new", data=form, headers=admin_headers)
    assert resp.status_code == 302
    r = db.query(Recipe).filter_by(slug="ikan-masak-lemak").one()
    assert r.status == "PUBLISHED"
    assert r.is_editors_pick is True
    assert r.cook_time == 30
    assert [s.title for s in r.sections] == ["Bahan", "Cara"]
    assert [i.content for i in r.sections[0].items] == ["1 ekor ikan", "1 cawan santan"]
    assert db.get(Category, cat.id).recipes_count == 1
    assert resp.headers["Location"].endswith(f"/admin/recipes/{r.id}/edit")


def test_recipe_form_errors_rerender_with_input(client, admin_headers):
    resp = client.post("/admin/recipes/new", data={"title": "", "description": "Simpan teks ini"}, headers=admin_headers)
    assert resp.status_code == 422
    body = resp.get_data(as_text=True)
    assert "Tajuk diperlukan." in body
    assert "Simpan teks ini" in body


def test_recipe_actions_from_list(client, db, admin_headers, seeded):
    resp = client.post(f"/admin/recipes/{seeded.id}/unpublish", data={"next": "https://evil.example"}, headers=admin_headers)
    assert resp.headers["Location"].endswith("/admin/recipes")
    db.expire_all()
    assert db.get(Recipe, seeded.id).status == "DRAFT"
    client.post(f"/admin/recipes/{seeded.id}/delete", headers=admin_headers)
    assert db.query(Recipe).count() == 0
    assert db.query(Comment).count() == 0


def test_bulk_moderation_form(client, db, admin_headers, seeded):
    comment = db.query(Comment).one()
    resp = client.post(
        "/admin/moderation",
        data={"commentIds": [str(comment.id)], "action": "spam", "status": "PENDING"},
        headers=admin_headers,
    )
    assert resp.status_code == 302
    db.expire_all()
    assert db.get(Comment, comment.id).status == "SPAM"


def test_category_form_conflict(client, admin_headers, seeded):
    resp = client.post("/admin/categories", data={"name": "Sup"}, headers=admin_headers)
    assert resp.status_code == 409
    assert client.post("/admin/categories", data={"name": "Minuman"}, headers=admin_headers).status_code == 302


def test_newsletter_form_add_update_delete(client, db, admin_headers):
    client.post("/admin/newsletter", data={"email": "baca@example.com"}, headers=admin_headers)
    sub = db.query(Subscriber).one()
    assert sub.is_verified is False
    client.post("/admin/newsletter", data={"id": str(sub.id), "email": "baca@example.com", "isVerified": "on"}, headers=admin_headers)
    db.expire_all()
    assert db.get(Subscriber, sub.id).is_verified is True
    client.post("/admin/newsletter", data={"id": str(sub.id), "action": "delete"}, headers=admin_headers)
    assert db.query(Subscriber).count() == 0


def test_guide_form(client, admin_headers):
    resp = client.post(
        "/admin/guides/new",
        data={"title": "Asas Rempah", "content": "Pengenalan", "section_title": ["Jintan"], "section_content": ["Wangi"]},
        headers=admin_headers,
    )
    assert resp.status_code == 302
    body = client.get("/panduan/asas-rempah").get_data(as_text=True)
    assert "Jintan" in body
    assert client.get("/admin/guides/999/edit", headers=admin_headers).status_code == 404


def test_draft_generate_form_validation(client, admin_headers):
    resp = client.post("/admin/drafts/generate", data={"script": ""}, headers=admin_headers)
    assert resp.status_code == 422
