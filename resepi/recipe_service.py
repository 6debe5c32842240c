"""Read side of the recipe catalogue: detail pages, listings, taxonomy and guides.

Every listing only returns PUBLISHED recipes; drafts are reachable by slug
for admins (preview) and nowhere else.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, selectinload

from .models import DIFFICULTIES, Category, Guide, Recipe, RecipeSection, Tag, User
from .pagination import paginate_query
from .slugs import tag_name_from_slug

LATEST_PAGE_SIZE = 12
CATEGORY_PAGE_SIZE = 12
TAG_PAGE_SIZE = 10
POPULAR_LIMIT = 12
EDITORS_PICKS_LIMIT = 5
POPULAR_CATEGORIES_LIMIT = 6
LATEST_GUIDES_LIMIT = 4

_LIST_LOAD = (
    selectinload(Recipe.images),
    selectinload(Recipe.category),
    selectinload(Recipe.author),
)


def published(db: Session) -> Query:
    return db.query(Recipe).options(*_LIST_LOAD).filter(Recipe.status == "PUBLISHED")


def get_recipe_by_slug(db: Session, slug: str, *, include_drafts: bool = False) -> Recipe | None:
    q = db.query(Recipe).options(
        selectinload(Recipe.sections).selectinload(RecipeSection.items),
        selectinload(Recipe.tips),
        selectinload(Recipe.images),
        selectinload(Recipe.tags),
        selectinload(Recipe.category),
        selectinload(Recipe.author),
    ).filter(Recipe.slug == slug)
    if not include_drafts:
        q = q.filter(Recipe.status == "PUBLISHED")
    return q.first()


def ordered_images(recipe: Recipe) -> list:
    """Primary image first, then upload order."""
    return sorted(recipe.images, key=lambda img: (not img.is_primary, img.id))


def latest_recipes(db: Session, page: int = 1, size: int = LATEST_PAGE_SIZE) -> tuple[list[Recipe], int]:
    q = published(db).order_by(Recipe.created_at.desc(), Recipe.id.desc())
    return paginate_query(q, page, size)


def popular_recipes(db: Session, sort: str = "views", limit: int = POPULAR_LIMIT) -> list[Recipe]:
    col = Recipe.like_count if sort == "likes" else Recipe.view_count
    return published(db).order_by(col.desc(), Recipe.id.desc()).limit(limit).all()


def editors_picks(db: Session, limit: int = EDITORS_PICKS_LIMIT) -> list[Recipe]:
    return (
        published(db)
        .filter(Recipe.is_editors_pick.is_(True))
        .order_by(Recipe.published_at.desc(), Recipe.id.desc())
        .limit(limit)
        .all()
    )


def popular_categories(db: Session, limit: int = POPULAR_CATEGORIES_LIMIT) -> list[Category]:
    return db.query(Category).order_by(Category.recipes_count.desc(), Category.name).limit(limit).all()


def all_categories(db: Session) -> list[Category]:
    return db.query(Category).order_by(Category.name).all()


def latest_guides(db: Session, limit: int = LATEST_GUIDES_LIMIT) -> list[Guide]:
    return db.query(Guide).order_by(Guide.created_at.desc(), Guide.id.desc()).limit(limit).all()


def home_page(db: Session) -> dict[str, Any]:
    latest, _total = latest_recipes(db, 1)
    return {
        "editors_picks": editors_picks(db),
        "latest": latest,
        "categories": popular_categories(db),
        "guides": latest_guides(db),
    }


def category_recipes(
    db: Session,
    slug: str,
    page: int = 1,
    difficulty: str | None = None,
    sort: str | None = None,
) -> tuple[Category | None, list[Recipe], int]:
    category = db.query(Category).filter(Category.slug == slug).first()
    if category is None:
        return None, [], 0
    q = published(db).filter(Recipe.category_id == category.id)
    diff = (difficulty or "").upper()
    if diff in DIFFICULTIES:
        q = q.filter(Recipe.difficulty == diff)
    if sort == "cookTime":
        q = q.order_by(Recipe.cook_time.asc(), Recipe.id.asc())
    elif sort == "prepTime":
        q = q.order_by(Recipe.prep_time.asc(), Recipe.id.asc())
    else:
        q = q.order_by(Recipe.created_at.desc(), Recipe.id.desc())
    items, total = paginate_query(q, page, CATEGORY_PAGE_SIZE)
    return category, items, total


def recipes_by_tag(db: Session, slug: str, page: int = 1) -> tuple[str, list[Recipe], int]:
    """Return (display name, recipes, total). Unknown tags yield an empty page, not an error."""
    tag = db.query(Tag).filter(Tag.slug == slug).first()
    if tag is None:
        return tag_name_from_slug(slug), [], 0
    q = (
        published(db)
        .filter(Recipe.tags.any(Tag.id == tag.id))
        .order_by(Recipe.published_at.desc(), Recipe.id.desc())
    )
    items, total = paginate_query(q, page, TAG_PAGE_SIZE)
    return tag.name, items, total


def list_guides(db: Session) -> list[Guide]:
    return db.query(Guide).order_by(Guide.created_at.desc(), Guide.id.desc()).all()


def get_guide(db: Session, slug: str) -> Guide | None:
    return (
        db.query(Guide)
        .options(
            selectinload(Guide.sections),
            selectinload(Guide.tags),
            selectinload(Guide.author),
            selectinload(Guide.images),
        )
        .filter(Guide.slug == slug)
        .first()
    )


def author_profile(db: Session, username: str) -> tuple[User | None, list[Recipe]]:
    user = db.query(User).filter(func.lower(User.username) == username.lower()).first()
    if user is None:
        return None, []
    recipes = published(db).filter(Recipe.user_id == user.id).order_by(Recipe.created_at.desc()).all()
    return user, recipes


def serialize_card(r: Recipe) -> dict[str, Any]:
    img = r.primary_image
    return {
        "id": r.id,
        "title": r.title,
        "slug": r.slug,
        "shortDescription": r.short_description,
        "difficulty": r.difficulty,
        "prepTime": r.prep_time,
        "cookTime": r.cook_time,
        "totalTime": r.total_time,
        "language": r.language,
        "category": {"name": r.category.name, "slug": r.category.slug} if r.category else None,
        "image": (img.thumbnail_url or img.url) if img else None,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
    }


def serialize_recipe(r: Recipe) -> dict[str, Any]:
    out = serialize_card(r)
    out.update(
        {
            "description": r.description,
            "servings": r.servings,
            "servingType": r.serving_type,
            "status": r.status,
            "isEditorsPick": r.is_editors_pick,
            "viewCount": r.view_count,
            "likeCount": r.like_count,
            "publishedAt": r.published_at.isoformat() if r.published_at else None,
            "tags": [{"name": t.name, "slug": t.slug} for t in r.tags],
            "tips": [t.content for t in r.tips],
            "sections": [
                {
                    "id": s.id,
                    "title": s.title,
                    "type": s.type,
                    "items": [i.content for i in s.items],
                }
                for s in r.sections
            ],
            "images": [
                {
                    "id": i.id,
                    "url": i.url,
                    "mediumUrl": i.medium_url,
                    "thumbnailUrl": i.thumbnail_url,
                    "alt": i.alt,
                    "isPrimary": i.is_primary,
                }
                for i in ordered_images(r)
            ],
        }
    )
    return out


__all__ = [
    "get_recipe_by_slug",
    "latest_recipes",
    "popular_recipes",
    "editors_picks",
    "popular_categories",
    "latest_guides",
    "home_page",
    "category_recipes",
    "recipes_by_tag",
    "list_guides",
    "get_guide",
    "author_profile",
    "serialize_card",
    "serialize_recipe",
]
