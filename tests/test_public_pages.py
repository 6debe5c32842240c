from resepi.mailer import MailError
from resepi.recipe_service import category_recipes, editors_picks, latest_recipes, popular_recipes, recipes_by_tag


def test_home_lists_published_only(client, make_recipe):
    make_recipe(title="Ayam Percik")
    make_recipe(title="Belum Siap", status="DRAFT")
    resp = client.get("/")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "Ayam Percik" in body
    assert "Belum Siap" not in body


def test_recipe_detail_renders_sections_and_tags(client, make_recipe, make_category):
    cat = make_category("Kuih Muih")
    make_recipe(title="Kuih Lapis", category=cat, tags=["Kukus"], cook_time=90, difficulty="HARD")
    body = client.get("/resepi/kuih-lapis").get_data(as_text=True)
    assert "1 cawan beras" in body
    assert "#Kukus" in body
    assert "1 jam 30 minit" in body
    assert "Sukar" in body
    assert "/kategori/kuih-muih" in body


def test_draft_hidden_from_public_visible_to_admin(client, admin_headers, make_recipe):
    make_recipe(title="Rahsia Dapur", status="DRAFT")
    resp = client.get("/resepi/rahsia-dapur")
    assert resp.status_code == 404
    assert "text/html" in resp.content_type
    resp = client.get("/resepi/rahsia-dapur", headers=admin_headers)
    assert resp.status_code == 200
    assert "belum diterbitkan" in resp.get_data(as_text=True)


def test_detail_shows_only_approved_comments(client, make_user, make_recipe, make_comment):
    u = make_user()
    r = make_recipe(title="Laksa Johor")
    make_comment(r, u, "Komen yang diluluskan")
    make_comment(r, u, "Komen menunggu", status="PENDING")
    body = client.get("/resepi/laksa-johor").get_data(as_text=True)
    assert "Komen yang diluluskan" in body
    assert "Komen menunggu" not in body


def test_detail_renders_replies_oldest_first_two_levels_deep(client, make_user, make_recipe, make_comment):
    u = make_user()
    r = make_recipe(title="Soto Ayam")
    top = make_comment(r, u, "Komen utama")
    first = make_comment(r, u, "Balasan pertama", parent=top)
    make_comment(r, u, "Balasan kedua", parent=top)
    nested = make_comment(r, u, "Balasan bersarang", parent=first)
    make_comment(r, u, "Terlalu dalam", parent=nested)
    make_comment(r, u, "Balasan ditolak", status="REJECTED", parent=top)
    body = client.get("/resepi/soto-ayam").get_data(as_text=True)
    assert body.index("Komen utama") < body.index("Balasan pertama") < body.index("Balasan bersarang")
    assert body.index("Balasan bersarang") < body.index("Balasan kedua")
    assert "Terlalu dalam" not in body
    assert "Balasan ditolak" not in body
    assert "Komen (4)" in body


def test_category_page_filters_by_difficulty(client, make_category, make_recipe):
    cat = make_category("Pencuci Mulut")
    make_recipe(title="Puding Roti", category=cat, difficulty="EASY")
    make_recipe(title="Kek Lapis Sarawak", category=cat, difficulty="EXPERT")
    body = client.get("/kategori/pencuci-mulut?difficulty=easy").get_data(as_text=True)
    assert "Puding Roti" in body
    assert "Kek Lapis Sarawak" not in body
    assert client.get("/kategori/tiada").status_code == 404


def test_tag_page_unknown_tag_is_empty_not_error(client, make_recipe):
    make_recipe(title="Sambal Sotong", tags=["Pedas"])
    body = client.get("/tag/pedas").get_data(as_text=True)
    assert "Sambal Sotong" in body
    assert client.get("/tag/tiada-langsung").status_code == 200


def test_search_page_keyword(client, make_recipe):
    make_recipe(title="Mee Goreng Mamak")
    make_recipe(title="Nasi Kerabu")
    body = client.get("/resepi/cari?q=goreng").get_data(as_text=True)
    assert "Mee Goreng Mamak" in body
    assert "Nasi Kerabu" not in body


def test_latest_and_popular(client, make_recipe):
    make_recipe(title="Roti Jala", view_count=10)
    make_recipe(title="Roti Canai", view_count=50, like_count=1)
    assert client.get("/resepi/terbaru").status_code == 200
    body = client.get("/resepi/popular").get_data(as_text=True)
    assert body.index("Roti Canai") < body.index("Roti Jala")


def test_author_profile(client, make_user, make_recipe):
    u = make_user(username="makcik")
    make_recipe(title="Gulai Ikan", user_id=u.id)
    body = client.get("/profil/MakCik").get_data(as_text=True)
    assert "Gulai Ikan" in body
    assert client.get("/profil/tiada").status_code == 404


def test_info_pages(client):
    for path in ("/tentang-kami", "/dasar-privasi", "/terma-penggunaan", "/panduan", "/kategori"):
        assert client.get(path).status_code == 200, path


def test_contact_json_validation(client):
    resp = client.post("/hubungi-kami", json={"name": "", "email": "bukan-emel", "message": ""})
    assert resp.status_code == 422
    fields = {e["field"] for e in resp.get_json()["errors"]}
    assert fields == {"name", "email", "message"}


def test_contact_form_forwards_mail(client, outbox):
    resp = client.post(
        "/hubungi-kami", data={"name": "Ali", "email": "ali@example.com", "message": "Helo admin"}
    )
    assert resp.status_code == 302
    assert "sent=1" in resp.headers["Location"]
    assert outbox[0].to == "notification@resepichenom.com"
    assert "Helo admin" in outbox[0].text


def test_contact_form_errors_rerender(client):
    resp = client.post("/hubungi-kami", data={"name": "Ali", "email": "", "message": "x"})
    assert resp.status_code == 422
    assert "Emel diperlukan." in resp.get_data(as_text=True)


def test_contact_mail_failure(client, monkeypatch):
    def refuse(*args):
        raise MailError("throttled")

    monkeypatch.setattr("resepi.public_ui.send_contact_message", refuse)
    form = {"name": "Ali", "email": "ali@example.com", "message": "Helo admin"}
    resp = client.post("/hubungi-kami", data=form)
    assert resp.status_code == 502
    assert "Emel tidak dapat dihantar" in resp.get_data(as_text=True)
    resp = client.post("/hubungi-kami", json=form)
    assert resp.status_code == 502
    assert resp.get_json()["detail"] == "mail_failed"


def test_category_sort_by_cook_and_prep_time(db, make_category, make_recipe):
    cat = make_category("Lauk")
    make_recipe(title="Ayam Goreng", category=cat, cook_time=30, prep_time=5)
    make_recipe(title="Telur Dadar", category=cat, cook_time=10, prep_time=15)
    make_recipe(title="Sayur Lemak", category=cat, cook_time=20, prep_time=1)

    def titles(sort):
        _cat, items, _total = category_recipes(db, "lauk", sort=sort)
        return [r.title for r in items]

    assert titles("cookTime") == ["Telur Dadar", "Sayur Lemak", "Ayam Goreng"]
    assert titles("prepTime") == ["Sayur Lemak", "Ayam Goreng", "Telur Dadar"]
    assert titles(None) == ["Sayur Lemak", "Telur Dadar", "Ayam Goreng"]


def test_popular_by_likes_or_views(db, make_recipe):
    make_recipe(title="Kari Kambing", view_count=100, like_count=2)
    make_recipe(title="Rendang Tok", view_count=20, like_count=9)
    make_recipe(title="Masak Lemak", view_count=50, like_count=0, status="DRAFT")
    assert [r.title for r in popular_recipes(db, sort="likes")] == ["Rendang Tok", "Kari Kambing"]
    assert [r.title for r in popular_recipes(db)] == ["Kari Kambing", "Rendang Tok"]


def test_editors_picks_capped_at_five(db, make_recipe):
    for n in range(7):
        make_recipe(title=f"Pilihan {n}", is_editors_pick=True)
    make_recipe(title="Biasa Sahaja")
    picks = editors_picks(db)
    assert len(picks) == 5
    assert all(r.is_editors_pick for r in picks)


def test_latest_pages_hold_twelve(client, db, make_recipe):
    for n in range(13):
        make_recipe(title=f"Resepi Baru {n:02d}")
    first, total = latest_recipes(db, 1)
    second, _ = latest_recipes(db, 2)
    assert total == 13
    assert len(first) == 12
    assert [r.title for r in second] == ["Resepi Baru 00"]
    body = client.get("/resepi/terbaru?page=2").get_data(as_text=True)
    assert "Resepi Baru 00" in body
    assert "Resepi Baru 12" not in body


def test_category_pages_hold_twelve(db, make_category, make_recipe):
    cat = make_category("Kuih")
    for n in range(13):
        make_recipe(title=f"Kuih {n:02d}", category=cat)
    _cat, first, total = category_recipes(db, "kuih", page=1)
    _cat, second, _ = category_recipes(db, "kuih", page=2)
    assert (len(first), len(second), total) == (12, 1, 13)


def test_tag_pages_hold_ten(client, db, make_recipe):
    for n in range(11):
        make_recipe(title=f"Sambal {n:02d}", tags=["Pedas"])
    _name, first, total = recipes_by_tag(db, "pedas", page=1)
    _name, second, _ = recipes_by_tag(db, "pedas", page=2)
    assert (len(first), len(second), total) == (10, 1, 11)
    assert client.get("/tag/pedas?page=3").status_code == 200
