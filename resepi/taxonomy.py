from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Category, Recipe, Tag
from .slugs import tag_slug


def tags_for_names(db: Session, names: Iterable[object]) -> list[Tag]:
    """Connect-or-create tags by slug, preserving first-seen order and dropping duplicates."""
    out: list[Tag] = []
    seen: set[str] = set()
    for raw in names:
        name = str(raw or "").strip()
        slug = tag_slug(name)
        if not slug or slug in seen:
            continue
        seen.add(slug)
        tag = db.query(Tag).filter(Tag.slug == slug).first()
        if tag is None:
            tag = Tag(name=name, slug=slug)
            db.add(tag)
            db.flush()
        out.append(tag)
    return out


def refresh_category_count(db: Session, category_id: int | None) -> None:
    """Recompute recipes_count from PUBLISHED recipes; call before commit."""
    if category_id is None:
        return
    cat = db.get(Category, category_id)
    if cat is None:
        return
    db.flush()
    cat.recipes_count = (
        db.query(func.count(Recipe.id))
        .filter(Recipe.category_id == category_id, Recipe.status == "PUBLISHED")
        .scalar()
        or 0
    )
