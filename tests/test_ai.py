import json
from types import SimpleNamespace

import pytest

from resepi import llm
from resepi.models import DraftRecipe, Recipe
from resepi.recipe_audit import build_recipe_text, map_difficulty, map_serving_type, parse_minutes

DRAFT_REPLY = {
    "title": "Ayam Masak Merah",
    "shortDescription": "Ayam dalam kuah tomato pedas",
    "difficulty": "HARD",
    "prepTime": "20 minit",
    "cookTime": "1 jam",
    "totalTime": "1 jam 20 minit",
    "servings": "4 orang",
    "servingType": "orang",
    "tags": ["Ayam", "Kenduri"],
    "tips": ["Goreng ayam separuh masak", {"content": "Guna sos tomato pekat"}, ""],
    "sections": [
        {"title": "Bahan", "type": "INGREDIENTS", "items": ["1 ekor ayam", {"content": "3 sudu cili boh"}]},
        {"title": "Cara", "type": "INSTRUCTIONS", "items": ["Goreng ayam", "Masak kuah"]},
    ],
}


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(total_tokens=1000),
            model="gpt-ujian",
        )


@pytest.fixture
def fake_openai(monkeypatch):
    def _install(reply):
        content = reply if isinstance(reply, str) else "```json\n" + json.dumps(reply) + "\n```"
        completions = FakeCompletions(content)
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(llm, "get_client", lambda: client)
        return completions

    return _install


def test_parse_minutes_variants():
    assert parse_minutes(45) == 45
    assert parse_minutes("45 minit") == 45
    assert parse_minutes("1 jam") == 60
    assert parse_minutes("1 jam 30 minit") == 90
    assert parse_minutes("1.5 jam") == 90
    assert parse_minutes("sekejap") is None
    assert parse_minutes(True) is None


def test_enum_mapping():
    assert map_difficulty("sukar") == "HARD"
    assert map_difficulty("entah") == "MEDIUM"
    assert map_serving_type("keping") == "SLICES"
    assert map_serving_type("dulang") == "PEOPLE"
    assert map_serving_type(None) is None


def test_strip_fences_and_cost():
    assert llm.strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert llm.estimate_cost(2000) == pytest.approx(0.003)
    assert llm.estimate_cost("nan") == 0.0
    assert llm.estimate_cost(None) == 0.0


def test_generate_draft_normalises_reply(client, db, admin, admin_headers, fake_openai):
    completions = fake_openai(DRAFT_REPLY)
    resp = client.post("/api/admin/drafts/generate", json={"script": "Hari ini kita masak ayam..."}, headers=admin_headers)
    assert resp.status_code == 201
    d = resp.get_json()["draft"]
    assert d["title"] == "Ayam Masak Merah"
    assert (d["prepTime"], d["cookTime"], d["totalTime"]) == (20, 60, 80)
    assert d["servings"] == 4
    assert d["servingType"] == "PEOPLE"
    assert d["tips"] == ["Goreng ayam separuh masak", "Guna sos tomato pekat"]
    assert d["openaiModel"] == "gpt-ujian"
    assert d["openaiTokensUsed"] == 1000
    assert completions.calls[0]["messages"][1]["content"] == "Hari ini kita masak ayam..."
    row = db.get(DraftRecipe, d["id"])
    assert row.user_id == admin.id
    assert row.source_script == "Hari ini kita masak ayam..."


def test_generate_draft_falls_back_on_missing_fields(client, admin_headers, fake_openai):
    fake_openai({"difficulty": "MUSTAHIL", "tags": "bukan senarai"})
    d = client.post("/api/admin/drafts/generate", json={"script": "x"}, headers=admin_headers).get_json()["draft"]
    assert d["title"] == "Resepi Tanpa Nama"
    assert d["description"] == "Tiada keterangan terperinci tersedia untuk resepi ini."
    assert d["difficulty"] == "MEDIUM"
    assert d["tags"] == []


def test_generate_requires_script(client, admin_headers):
    resp = client.post("/api/admin/drafts/generate", json={"script": "  "}, headers=admin_headers)
    assert resp.status_code == 422


def test_invalid_model_json_is_upstream_error(client, admin_headers, fake_openai):
    fake_openai("ini bukan JSON")
    resp = client.post("/api/admin/drafts/generate", json={"script": "x"}, headers=admin_headers)
    assert resp.status_code == 502
    assert resp.get_json()["reason"] == "invalid JSON in model response"


def test_missing_api_key_is_upstream_error(app, client, admin_headers):
    app.config["OPENAI_API_KEY"] = None
    resp = client.post("/api/admin/drafts/generate", json={"script": "x"}, headers=admin_headers)
    assert resp.status_code == 502


def test_update_and_publish_draft(client, db, admin_headers, fake_openai, make_category):
    fake_openai(DRAFT_REPLY)
    draft_id = client.post(
        "/api/admin/drafts/generate", json={"script": "x"}, headers=admin_headers
    ).get_json()["draft"]["id"]
    resp = client.put(
        f"/api/admin/drafts/{draft_id}", json={"title": "Ayam Merah Kenduri", "cookTime": "45"}, headers=admin_headers
    )
    assert resp.get_json()["draft"]["cookTime"] == 45
    assert client.put(f"/api/admin/drafts/{draft_id}", json={"title": " "}, headers=admin_headers).status_code == 422

    cat = make_category("Ayam")
    resp = client.post(f"/api/admin/drafts/{draft_id}/publish", json={"categoryId": cat.id}, headers=admin_headers)
    assert resp.status_code == 201
    published = resp.get_json()["recipe"]
    assert published["slug"] == "ayam-merah-kenduri"
    assert published["status"] == "PUBLISHED"

    recipe = db.get(Recipe, published["id"])
    assert [s.type for s in recipe.sections] == ["INGREDIENTS", "INSTRUCTIONS"]
    assert [i.content for i in recipe.sections[0].items] == ["1 ekor ayam", "3 sudu cili boh"]
    assert sorted(t.name for t in recipe.tags) == ["Ayam", "Kenduri"]
    assert db.get(DraftRecipe, draft_id).published_recipe_id == recipe.id

    again = client.post(f"/api/admin/drafts/{draft_id}/publish", json={}, headers=admin_headers)
    assert again.status_code == 409


def test_audit_suggest_accept_reject(client, db, admin_headers, fake_openai, make_recipe):
    r = make_recipe(title="Bubur Lambuk", prep_time=10, difficulty="EASY", tags=["Ramadan"])
    fake_openai({"prepTime": "30 minit", "difficulty": "sederhana", "servings": 8, "servingType": "mangkuk", "tags": ["Bubur", "Ramadan"]})
    resp = client.post(f"/api/admin/audits/{r.id}", headers=admin_headers)
    audit = resp.get_json()["audit"]
    assert audit["current"]["prepTime"] == 10
    assert audit["suggested"] == {
        "prepTime": 30,
        "cookTime": None,
        "totalTime": None,
        "difficulty": "MEDIUM",
        "servings": 8,
        "servingType": "BOWLS",
        "tags": ["Bubur", "Ramadan"],
    }
    assert [a["id"] for a in client.get("/api/admin/audits", headers=admin_headers).get_json()["items"]] == [r.id]

    resp = client.post(f"/api/admin/audits/{r.id}/accept", headers=admin_headers)
    accepted = resp.get_json()["recipe"]
    assert accepted["prepTime"] == 30
    assert accepted["difficulty"] == "MEDIUM"
    assert accepted["servingType"] == "BOWLS"
    assert [t["name"] for t in accepted["tags"]] == ["Bubur", "Ramadan"]
    assert client.get("/api/admin/audits", headers=admin_headers).get_json()["items"] == []

    client.post(f"/api/admin/audits/{r.id}", headers=admin_headers)
    client.post(f"/api/admin/audits/{r.id}/reject", headers=admin_headers)
    db.expire_all()
    row = db.get(Recipe, r.id)
    assert row.openai_audited_at is None
    assert row.prep_time == 30


def test_build_recipe_text(db, make_recipe, make_category):
    r = make_recipe(title="Cucur Udang", category=make_category("Kuih"), description="Rangup", tags=["Minum Petang"])
    db.refresh(r)
    text = build_recipe_text(r)
    assert text.startswith("Judul Resipi: Cucur Udang")
    assert "Kategori: Kuih" in text
    assert "Bahan-Bahan (Bahan-bahan):" in text
    assert "- 1 cawan beras" in text
    assert text.endswith("Tags: Minum Petang")
