import io
import os

import pytest
from PIL import Image

from resepi.errors import ValidationError
from resepi.images import process_image, regenerate_variants, unique_filename, validate_upload
from resepi.models import GuideImage, RecipeImage


def _png(size=(1600, 1200), mode="RGBA"):
    buf = io.BytesIO()
    Image.new(mode, size, (200, 50, 50, 255) if mode == "RGBA" else (200, 50, 50)).save(buf, "PNG")
    return buf.getvalue()


def _upload(client, headers, recipe_id, data, name="foto.png", mimetype="image/png", alt=None):
    form = {"image": (io.BytesIO(data), name, mimetype)}
    if alt is not None:
        form["alt"] = alt
    return client.post(
        f"/api/admin/recipes/{recipe_id}/images", data=form, headers=headers, content_type="multipart/form-data"
    )


def test_upload_creates_three_variants(app, client, admin_headers, make_recipe):
    r = make_recipe(title="Kek Batik")
    resp = _upload(client, admin_headers, r.id, _png())
    assert resp.status_code == 201
    img = resp.get_json()["image"]
    assert img["isPrimary"] is True
    assert img["alt"] == "Kek Batik"
    assert (img["width"], img["height"]) == (1600, 1200)
    assert img["url"].startswith("/static/uploads/recipes/original-")
    upload_dir = app.config["UPLOAD_DIR"]
    with Image.open(os.path.join(upload_dir, os.path.basename(img["mediumUrl"]))) as medium:
        assert medium.size == (800, 600)
        assert medium.format == "JPEG"
    with Image.open(os.path.join(upload_dir, os.path.basename(img["thumbnailUrl"]))) as thumb:
        assert max(thumb.size) == 200


def test_second_upload_is_not_primary_and_primary_can_move(client, admin_headers, make_recipe):
    r = make_recipe()
    first = _upload(client, admin_headers, r.id, _png((300, 300))).get_json()["image"]
    second = _upload(client, admin_headers, r.id, _png((300, 300)), alt="Hiasan").get_json()["image"]
    assert second["isPrimary"] is False
    assert second["alt"] == "Hiasan"

    resp = client.post(f"/api/admin/recipes/{r.id}/images/{second['id']}/primary", headers=admin_headers)
    assert resp.get_json()["image"]["isPrimary"] is True
    images = client.get(f"/api/admin/recipes/{r.id}", headers=admin_headers).get_json()["recipe"]["images"]
    assert [(i["id"], i["isPrimary"]) for i in images] == [(second["id"], True), (first["id"], False)]


def test_small_images_are_not_enlarged(app, client, admin_headers, make_recipe):
    r = make_recipe()
    img = _upload(client, admin_headers, r.id, _png((100, 80), mode="RGB")).get_json()["image"]
    with Image.open(os.path.join(app.config["UPLOAD_DIR"], os.path.basename(img["mediumUrl"]))) as medium:
        assert medium.size == (100, 80)


def test_upload_rejects_wrong_type_and_extension(client, admin_headers, make_recipe):
    r = make_recipe()
    resp = _upload(client, admin_headers, r.id, b"GIF89a", name="anim.gif", mimetype="image/gif")
    assert resp.status_code == 422
    assert "Invalid file type" in resp.get_json()["errors"][0]["message"]
    resp = _upload(client, admin_headers, r.id, _png(), name="foto.jpg", mimetype="image/png")
    assert resp.status_code == 422
    assert "Invalid file extension" in resp.get_json()["errors"][0]["message"]
    resp = _upload(client, admin_headers, r.id, b"bukan imej", name="rosak.png")
    assert resp.status_code == 422


def test_upload_without_file(client, admin_headers, make_recipe):
    r = make_recipe()
    resp = client.post(f"/api/admin/recipes/{r.id}/images", data={}, headers=admin_headers)
    assert resp.status_code == 422


def test_delete_image_removes_files(app, client, db, admin_headers, make_recipe):
    r = make_recipe()
    img = _upload(client, admin_headers, r.id, _png((300, 300))).get_json()["image"]
    path = os.path.join(app.config["UPLOAD_DIR"], os.path.basename(img["url"]))
    assert os.path.exists(path)
    assert client.delete(f"/api/admin/recipes/{r.id}/images/{img['id']}", headers=admin_headers).status_code == 200
    assert not os.path.exists(path)
    assert db.query(RecipeImage).count() == 0
    assert client.delete(f"/api/admin/recipes/{r.id}/images/{img['id']}", headers=admin_headers).status_code == 404


def test_deleting_recipe_removes_its_image_files(app, client, db, admin_headers, make_recipe):
    r = make_recipe()
    img = _upload(client, admin_headers, r.id, _png((300, 300))).get_json()["image"]
    paths = [os.path.join(app.config["UPLOAD_DIR"], os.path.basename(img[k])) for k in ("url", "mediumUrl", "thumbnailUrl")]
    assert all(os.path.exists(p) for p in paths)
    assert client.delete(f"/api/admin/recipes/{r.id}", headers=admin_headers).status_code == 200
    assert not any(os.path.exists(p) for p in paths)
    assert db.query(RecipeImage).count() == 0


def _guide(client, headers, title="Cara Menyimpan Rempah"):
    return client.post("/api/admin/guides", json={"title": title}, headers=headers).get_json()["guide"]


def test_guide_image_upload_and_delete(app, client, db, admin_headers):
    g = _guide(client, admin_headers)
    form = {"image": (io.BytesIO(_png()), "rempah.png", "image/png"), "alt": "Balang rempah"}
    resp = client.post(
        f"/api/admin/guides/{g['id']}/images", data=form, headers=admin_headers, content_type="multipart/form-data"
    )
    assert resp.status_code == 201
    img = resp.get_json()["image"]
    assert img["isPrimary"] is True
    assert img["alt"] == "Balang rempah"
    assert img["mediumUrl"].startswith("/static/uploads/recipes/medium-guide")
    medium = os.path.join(app.config["UPLOAD_DIR"], os.path.basename(img["mediumUrl"]))
    with Image.open(medium) as im:
        assert im.size == (800, 600)

    listed = client.get("/api/admin/guides", headers=admin_headers).get_json()["items"][0]
    assert [i["id"] for i in listed["images"]] == [img["id"]]
    page = client.get(f"/panduan/{g['slug']}")
    assert img["mediumUrl"] in page.get_data(as_text=True)

    assert client.delete(f"/api/admin/guides/{g['id']}/images/{img['id']}", headers=admin_headers).status_code == 200
    assert not os.path.exists(medium)
    assert db.query(GuideImage).count() == 0
    assert client.delete(f"/api/admin/guides/{g['id']}/images/{img['id']}", headers=admin_headers).status_code == 404


def test_guide_image_rejects_bad_upload_and_unknown_guide(client, admin_headers):
    g = _guide(client, admin_headers)
    form = {"image": (io.BytesIO(b"GIF89a"), "anim.gif", "image/gif")}
    resp = client.post(
        f"/api/admin/guides/{g['id']}/images", data=form, headers=admin_headers, content_type="multipart/form-data"
    )
    assert resp.status_code == 422
    form = {"image": (io.BytesIO(_png()), "a.png", "image/png")}
    resp = client.post("/api/admin/guides/999/images", data=form, headers=admin_headers, content_type="multipart/form-data")
    assert resp.status_code == 404


def test_deleting_guide_removes_image_files(app, client, db, admin_headers):
    g = _guide(client, admin_headers)
    form = {"image": (io.BytesIO(_png((300, 300))), "a.png", "image/png")}
    img = client.post(
        f"/api/admin/guides/{g['id']}/images", data=form, headers=admin_headers, content_type="multipart/form-data"
    ).get_json()["image"]
    path = os.path.join(app.config["UPLOAD_DIR"], os.path.basename(img["url"]))
    assert os.path.exists(path)
    assert client.delete(f"/api/admin/guides/{g['id']}", headers=admin_headers).status_code == 200
    assert not os.path.exists(path)
    assert db.query(GuideImage).count() == 0


def test_validate_upload_size_limit(app):
    with app.app_context():
        app.config["MAX_FILE_SIZE"] = 1024 * 1024
        with pytest.raises(ValidationError) as exc:
            validate_upload("a.png", "image/png", 2 * 1024 * 1024)
        assert exc.value.errors[0]["message"] == "File size exceeds 1MB limit"


def test_unique_filename_normalises_extension():
    name = unique_filename("Gambar Saya.JPEG", prefix="7")
    assert name.startswith("7-")
    assert name.endswith(".jpg")
    assert unique_filename("tiada-sambungan").endswith(".jpg")


def test_regenerate_variants(app, db, make_recipe):
    r = make_recipe()
    with app.app_context():
        processed = process_image(_png((1000, 1000)), "x.png")
        db.add(RecipeImage(recipe_id=r.id, url=processed.url, medium_url=None, thumbnail_url=None, is_primary=True))
        db.commit()
        assert regenerate_variants(db) == 1
    row = db.query(RecipeImage).one()
    assert row.medium_url.endswith("medium-x.jpg")
    assert row.width == 1000
