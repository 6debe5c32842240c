from __future__ import annotations

from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .models import DIFFICULTIES, Recipe
from .pagination import lenient_page, page_count, paginate_query
from .recipe_service import published, serialize_card

SEARCH_PAGE_SIZE = 12
SUGGESTION_LIMIT = 5
MIN_SUGGESTION_LENGTH = 2


def _like(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_recipes(
    db: Session,
    keyword: str | None = None,
    difficulty: str | None = None,
    category_id: int | None = None,
    page: int = 1,
) -> tuple[list[Recipe], int]:
    """Site search page: keyword over title and short description."""
    q = published(db)
    kw = (keyword or "").strip()
    if kw:
        pattern = _like(kw)
        q = q.filter(
            or_(
                Recipe.title.ilike(pattern, escape="\\"),
                Recipe.short_description.ilike(pattern, escape="\\"),
            )
        )
    diff = (difficulty or "").upper()
    if diff in DIFFICULTIES:
        q = q.filter(Recipe.difficulty == diff)
    if category_id:
        q = q.filter(Recipe.category_id == category_id)
    q = q.order_by(Recipe.created_at.desc(), Recipe.id.desc())
    return paginate_query(q, page, SEARCH_PAGE_SIZE)


def api_search(db: Session, args: dict[str, Any]) -> dict[str, Any]:
    """JSON search used by the search box: adds description match, maxCookTime and language."""
    q = published(db)
    kw = (args.get("q") or "").strip()
    if kw:
        pattern = _like(kw)
        q = q.filter(
            or_(
                Recipe.title.ilike(pattern, escape="\\"),
                Recipe.short_description.ilike(pattern, escape="\\"),
                Recipe.description.ilike(pattern, escape="\\"),
            )
        )
    diff = (args.get("difficulty") or "").upper()
    if diff in DIFFICULTIES:
        q = q.filter(Recipe.difficulty == diff)
    category = args.get("category")
    if category and str(category).isdigit():
        q = q.filter(Recipe.category_id == int(category))
    max_cook = args.get("maxCookTime")
    if max_cook and str(max_cook).isdigit():
        q = q.filter(Recipe.cook_time <= int(max_cook))
    language = args.get("language")
    if language:
        q = q.filter(Recipe.language == language)
    page = lenient_page(args.get("page"))
    q = q.order_by(Recipe.created_at.desc(), Recipe.id.desc())
    items, total = paginate_query(q, page, SEARCH_PAGE_SIZE)
    return {
        "items": [serialize_card(r) for r in items],
        "total": total,
        "pages": page_count(total, SEARCH_PAGE_SIZE),
        "currentPage": page,
    }


def search_suggestions(db: Session, query: str | None) -> list[dict[str, Any]]:
    text = (query or "").strip()
    if len(text) < MIN_SUGGESTION_LENGTH:
        return []
    pattern = _like(text)
    rows = (
        db.query(Recipe.id, Recipe.title, Recipe.slug)
        .filter(
            Recipe.status == "PUBLISHED",
            or_(Recipe.title.ilike(pattern, escape="\\"), Recipe.description.ilike(pattern, escape="\\")),
        )
        .order_by(Recipe.created_at.desc(), Recipe.id.desc())
        .limit(SUGGESTION_LIMIT)
        .all()
    )
    return [{"id": r.id, "title": r.title, "slug": r.slug} for r in rows]


__all__ = ["search_recipes", "api_search", "search_suggestions"]
