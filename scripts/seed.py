"""Seed a local database with an admin, a few categories, tags and recipes.

Usage:
  python scripts/seed.py
  python scripts/seed.py --admin-email admin@resepi.local --admin-password 'Admin123!'

Idempotent: existing categories and recipes (matched by slug) are left alone and
an existing admin keeps its password.
"""
from __future__ import annotations

import argparse
import os
import sys

sys.path.append(os.getcwd())

from werkzeug.security import generate_password_hash

from resepi import create_app
from resepi.admin_service import save_category, save_guide, save_recipe
from resepi.db import create_all, get_new_session
from resepi.models import Category, Guide, Recipe, User, utcnow
from resepi.slugs import generate_slug

CATEGORIES = [
    {"name": "Masakan Melayu", "slug": "masakan-melayu", "description": "Lauk-pauk dan hidangan tradisional Melayu."},
    {"name": "Kuih Muih", "slug": "kuih-muih", "description": "Kuih tradisional untuk minum petang."},
    {"name": "Minuman", "slug": "minuman", "description": "Minuman panas dan sejuk."},
]

RECIPES = [
    {
        "title": "Nasi Lemak Sambal Bilis",
        "category": "masakan-melayu",
        "shortDescription": "Nasi lemak wangi dengan sambal bilis pedas manis.",
        "prepTime": "20",
        "cookTime": "40",
        "totalTime": "60",
        "servings": "4",
        "servingType": "PEOPLE",
        "difficulty": "MEDIUM",
        "tags": "nasi, sarapan, pedas",
        "tips": "Gunakan santan segar untuk rasa lebih lemak.\nRendam beras 30 minit sebelum dimasak.",
        "sections": [
            {"title": "Bahan-bahan", "type": "INGREDIENTS", "items": "2 cawan beras\n1 cawan santan\n2 helai daun pandan\n1 sudu teh garam"},
            {"title": "Cara Memasak", "type": "INSTRUCTIONS", "items": "Basuh beras.\nMasak beras bersama santan, pandan dan garam.\nHidangkan bersama sambal bilis."},
        ],
        "isEditorsPick": True,
    },
    {
        "title": "Kuih Seri Muka",
        "category": "kuih-muih",
        "shortDescription": "Pulut kukus dengan lapisan kastard pandan.",
        "prepTime": "30",
        "cookTime": "1 jam",
        "servings": "16",
        "servingType": "PIECES",
        "difficulty": "HARD",
        "tags": "kuih, pandan",
        "sections": [
            {"title": "Lapisan Pulut", "type": "INGREDIENTS", "items": "2 cawan pulut\n1 cawan santan\nSecubit garam"},
            {"title": "Lapisan Pandan", "type": "INGREDIENTS", "items": "3 biji telur\n1 cawan gula\n1 cawan jus pandan\n1/2 cawan tepung gandum"},
            {"title": "Cara Membuat", "type": "INSTRUCTIONS", "items": "Kukus pulut hingga masak.\nTekan pulut dalam loyang.\nTuang adunan pandan dan kukus 30 minit."},
        ],
    },
    {
        "title": "Teh Tarik",
        "category": "minuman",
        "shortDescription": "Teh susu berbuih ala mamak.",
        "prepTime": "5",
        "cookTime": "5",
        "totalTime": "10",
        "servings": "2",
        "servingType": "GLASSES",
        "difficulty": "EASY",
        "tags": "minuman, teh",
        "sections": [
            {"title": "Bahan-bahan", "type": "INGREDIENTS", "items": "2 uncang teh\n2 cawan air panas\n3 sudu besar susu pekat"},
            {"title": "Cara Membuat", "type": "INSTRUCTIONS", "items": "Rendam teh dalam air panas.\nCampurkan susu pekat.\nTarik teh antara dua jag hingga berbuih."},
        ],
    },
]


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed local dev data.")
    p.add_argument("--admin-email", default=os.getenv("SUPERUSER_EMAIL", "admin@resepi.local"))
    p.add_argument("--admin-password", default=os.getenv("SUPERUSER_PASSWORD", "Admin123!"))
    p.add_argument("--create-all", action="store_true", help="Create tables first (scratch sqlite only).")
    return p.parse_args()


def _ensure_admin(db, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None:
        user = User(
            name="Admin",
            username=email.split("@", 1)[0],
            email=email.lower(),
            password_hash=generate_password_hash(password),
            email_verified=utcnow(),
            role="admin",
        )
        db.add(user)
        db.commit()
        print(f"Created admin {email}")
    elif user.role != "admin":
        user.role = "admin"
        db.commit()
        print(f"Promoted {email} to admin")
    return user


def main() -> int:
    args = _parse_args()
    app = create_app()
    with app.app_context():
        if args.create_all:
            create_all()
        db = get_new_session()
        try:
            admin = _ensure_admin(db, args.admin_email, args.admin_password)
            cat_ids = {}
            for payload in CATEGORIES:
                cat = db.query(Category).filter(Category.slug == payload["slug"]).first()
                if cat is None:
                    cat = save_category(db, payload)
                    print(f"Category: {cat.name}")
                cat_ids[cat.slug] = cat.id
            for item in RECIPES:
                payload = {k: v for k, v in item.items() if k != "category"}
                payload["categoryId"] = cat_ids[item["category"]]
                payload["status"] = "PUBLISHED"
                if db.query(Recipe.id).filter(Recipe.slug == generate_slug(item["title"])).first():
                    continue
                recipe = save_recipe(db, payload, actor_id=admin.id)
                print(f"Recipe: {recipe.title} -> /resepi/{recipe.slug}")
            if db.query(Guide.id).first() is None:
                save_guide(
                    db,
                    {
                        "title": "Asas Memasak Nasi",
                        "content": "Panduan ringkas untuk nasi yang gebu setiap kali.",
                        "tags": "nasi",
                        "sections": [
                            {"title": "Nisbah air", "content": "Gunakan nisbah 1 beras kepada 1.5 air."},
                            {"title": "Rehatkan nasi", "content": "Biarkan nasi 10 minit selepas masak."},
                        ],
                    },
                    actor_id=admin.id,
                )
                print("Guide: Asas Memasak Nasi")
        finally:
            db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
