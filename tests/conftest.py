import os
import sys

import pytest

# Path setup before any project imports to satisfy E402
ROOT = os.path.dirname(__file__)
PARENT = os.path.abspath(os.path.join(ROOT, ".."))
if PARENT not in sys.path:  # pragma: no cover - environment dependent
    sys.path.insert(0, PARENT)

from werkzeug.security import generate_password_hash  # noqa: E402

from resepi import counters, rate_limiter  # noqa: E402
from resepi.account_service import _reset_login_failures  # noqa: E402
from resepi.app_factory import create_app  # noqa: E402
from resepi.audit_events import clear_audit_events  # noqa: E402
from resepi.db import get_new_session  # noqa: E402
from resepi.models import Category, Comment, Recipe, RecipeItem, RecipeSection, Tag, User, utcnow  # noqa: E402

PASSWORD = "Rahsia123"


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.delenv("RATE_LIMIT_BACKEND", raising=False)
    monkeypatch.delenv("COUNTERS_BACKEND", raising=False)
    rate_limiter._test_reset()
    counters._test_reset()
    _reset_login_failures()
    clear_audit_events()
    upload_dir = tmp_path / "uploads"
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "database_url": f"sqlite:///{tmp_path / 'test.db'}",
            "FORCE_DB_REINIT": True,
            "mail_backend": "memory",
            "upload_dir": str(upload_dir),
            "site_url": "http://resepi.test",
        }
    )
    yield app
    rate_limiter._test_reset()
    counters._test_reset()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(app):
    from resepi.mailer import get_mailer

    with app.app_context():
        mailer = get_mailer()
    return mailer.outbox


@pytest.fixture
def db(app):
    s = get_new_session()
    yield s
    s.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email=None, role="user", verified=True, status="ACTIVE", username=None, password=PASSWORD, **kw):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=kw.pop("name", f"Pengguna {n}"),
            username=username or f"pengguna{n}",
            email=(email or f"user{n}@example.com").lower(),
            password_hash=generate_password_hash(password),
            email_verified=utcnow() if verified else None,
            role=role,
            status=status,
            **kw,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_category(db):
    def _make(name="Masakan Melayu", slug=None, **kw):
        cat = Category(name=name, slug=slug or name.lower().replace(" ", "-"), **kw)
        db.add(cat)
        db.commit()
        return cat

    return _make


@pytest.fixture
def make_recipe(db):
    counter = {"n": 0}

    def _make(title=None, status="PUBLISHED", category=None, tags=(), sections=True, **kw):
        counter["n"] += 1
        title = title or f"Resepi Ujian {counter['n']}"
        recipe = Recipe(
            title=title,
            slug=kw.pop("slug", None) or title.lower().replace(" ", "-"),
            status=status,
            published_at=utcnow() if status == "PUBLISHED" else None,
            category_id=category.id if category is not None else None,
            **kw,
        )
        for name in tags:
            tag = db.query(Tag).filter(Tag.name == name).first() or Tag(name=name, slug=name.lower().replace(" ", "-"))
            recipe.tags.append(tag)
        if sections:
            sec = RecipeSection(title="Bahan-bahan", type="INGREDIENTS", position=0)
            sec.items = [RecipeItem(content="1 cawan beras", position=0), RecipeItem(content="2 biji telur", position=1)]
            recipe.sections = [sec]
        db.add(recipe)
        db.commit()
        return recipe

    return _make


@pytest.fixture
def make_comment(db):
    def _make(recipe, user, content="Sedap!", status="APPROVED", parent=None):
        c = Comment(
            content=content,
            status=status,
            recipe_id=recipe.id,
            user_id=user.id,
            parent_id=parent.id if parent is not None else None,
        )
        db.add(c)
        db.commit()
        return c

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin", username="admin")


@pytest.fixture
def admin_headers(admin):
    return {"X-User-Role": "admin", "X-User-Id": str(admin.id)}
