"""Admin operations: users, recipes, taxonomy, guides and dashboard counts.

Payloads use the JSON field names of the admin API (camelCase); the HTML
forms are translated into the same shape before reaching this module.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from .audit_events import record_audit_event
from .errors import ConflictError, DomainError, NotFoundError, ValidationError
from .images import remove_files, variant_urls
from .models import (
    DIFFICULTIES,
    SECTION_TYPES,
    SERVING_TYPES,
    Category,
    Comment,
    DraftRecipe,
    Guide,
    GuideSection,
    Recipe,
    RecipeItem,
    RecipeSection,
    RecipeTip,
    SavedRecipe,
    Subscriber,
    Tag,
    User,
    UserLike,
    recipe_tags,
    utcnow,
)
from .recipe_audit import parse_int, parse_minutes
from .slugs import generate_slug, tag_slug, unique_slug
from .taxonomy import refresh_category_count, tags_for_names


# ---- Users ----

def list_users(db: Session, search: str | None = None) -> list[User]:
    q = db.query(User)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern), User.username.ilike(pattern)))
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def _target_user(db: Session, actor_id: int, user_id: int) -> User:
    if actor_id == user_id:
        raise DomainError(400, "bad_request", "cannot_modify_self")
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user_not_found")
    return user


def set_user_status(db: Session, actor_id: int, user_id: int, status: str) -> User:
    user = _target_user(db, actor_id, user_id)
    user.status = status
    db.commit()
    record_audit_event("user_status_changed", actor_user_id=actor_id, user_id=user_id, status=status)
    return user


def promote_user(db: Session, actor_id: int, user_id: int) -> User:
    user = _target_user(db, actor_id, user_id)
    user.role = "admin"
    db.commit()
    record_audit_event("user_promoted", actor_user_id=actor_id, user_id=user_id)
    return user


def serialize_user(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "name": u.name,
        "username": u.username,
        "email": u.email,
        "role": u.role,
        "status": u.status,
        "emailVerified": u.email_verified.isoformat() if u.email_verified else None,
        "createdAt": u.created_at.isoformat() if u.created_at else None,
    }


# ---- Recipes ----

def list_recipes(db: Session, status: str | None = None, search: str | None = None) -> list[Recipe]:
    q = db.query(Recipe).options(selectinload(Recipe.category), selectinload(Recipe.images))
    st = (status or "").upper()
    if st in ("DRAFT", "PUBLISHED"):
        q = q.filter(Recipe.status == st)
    if search:
        q = q.filter(Recipe.title.ilike(f"%{search.strip()}%"))
    return q.order_by(Recipe.created_at.desc(), Recipe.id.desc()).all()


def get_recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = (
        db.query(Recipe)
        .options(
            selectinload(Recipe.sections).selectinload(RecipeSection.items),
            selectinload(Recipe.tips),
            selectinload(Recipe.tags),
            selectinload(Recipe.images),
        )
        .filter(Recipe.id == recipe_id)
        .first()
    )
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    return recipe


def _names(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def _lines(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.splitlines() if v.strip()]
    out = []
    for v in value:
        text = v.get("content") if isinstance(v, dict) else v
        text = str(text or "").strip()
        if text:
            out.append(text)
    return out


def _build_sections(raw: Any) -> list[RecipeSection]:
    sections = []
    for pos, sec in enumerate(raw or []):
        if not isinstance(sec, dict):
            continue
        sec_type = str(sec.get("type") or "INGREDIENTS").upper()
        if sec_type not in SECTION_TYPES:
            raise ValidationError([{"field": "sections", "message": f"Invalid section type {sec_type}"}])
        section = RecipeSection(title=(sec.get("title") or "").strip() or None, type=sec_type, position=pos)
        section.items = [RecipeItem(content=c, position=i) for i, c in enumerate(_lines(sec.get("items")))]
        sections.append(section)
    return sections


def save_recipe(db: Session, payload: dict[str, Any], recipe_id: int | None = None, actor_id: int | None = None) -> Recipe:
    """Create (recipe_id None) or update a recipe from an admin payload."""
    title = (payload.get("title") or "").strip()
    if not title:
        raise ValidationError([{"field": "title", "message": "Tajuk diperlukan."}])
    difficulty = str(payload.get("difficulty") or "MEDIUM").upper()
    if difficulty not in DIFFICULTIES:
        raise ValidationError([{"field": "difficulty", "message": "Tahap kesukaran tidak sah."}])
    serving_type = (payload.get("servingType") or "").upper() or None
    if serving_type is not None and serving_type not in SERVING_TYPES:
        raise ValidationError([{"field": "servingType", "message": "Jenis hidangan tidak sah."}])
    category_id = parse_int(payload.get("categoryId"))
    if category_id is not None and db.get(Category, category_id) is None:
        raise ValidationError([{"field": "categoryId", "message": "Kategori tidak wujud."}])

    if recipe_id is None:
        recipe = Recipe(user_id=actor_id, status="DRAFT")
        old_category = None
    else:
        recipe = get_recipe(db, recipe_id)
        old_category = recipe.category_id

    requested = generate_slug(payload.get("slug") or "")
    if requested:
        clash = db.query(Recipe.id).filter(Recipe.slug == requested)
        if recipe_id is not None:
            clash = clash.filter(Recipe.id != recipe_id)
        if clash.first() is not None:
            raise ConflictError("slug_taken", slug=requested)
        recipe.slug = requested
    elif recipe_id is None or not recipe.slug:
        recipe.slug = unique_slug(db, Recipe, generate_slug(title), exclude_id=recipe_id)

    recipe.title = title
    recipe.short_description = (payload.get("shortDescription") or "").strip() or None
    recipe.description = (payload.get("description") or "").strip() or None
    recipe.language = payload.get("language") or recipe.language or "ms"
    recipe.prep_time = parse_minutes(payload.get("prepTime"))
    recipe.cook_time = parse_minutes(payload.get("cookTime"))
    recipe.total_time = parse_minutes(payload.get("totalTime"))
    recipe.servings = parse_int(payload.get("servings"))
    recipe.serving_type = serving_type
    recipe.difficulty = difficulty
    recipe.category_id = category_id
    if "sections" in payload:
        recipe.sections = _build_sections(payload.get("sections"))
    if "tips" in payload:
        recipe.tips = [RecipeTip(content=t) for t in _lines(payload.get("tips"))]
    if "tags" in payload:
        recipe.tags = tags_for_names(db, _names(payload.get("tags")))
    if "status" in payload:
        _apply_status(recipe, str(payload.get("status") or "DRAFT").upper())
    if "isEditorsPick" in payload:
        recipe.is_editors_pick = bool(payload.get("isEditorsPick"))

    if recipe_id is None:
        db.add(recipe)
    refresh_category_count(db, recipe.category_id)
    if old_category != recipe.category_id:
        refresh_category_count(db, old_category)
    db.commit()
    record_audit_event(
        "recipe_created" if recipe_id is None else "recipe_updated", actor_user_id=actor_id, recipe_id=recipe.id
    )
    return recipe


def _apply_status(recipe: Recipe, status: str) -> None:
    if status not in ("DRAFT", "PUBLISHED"):
        raise ValidationError([{"field": "status", "message": "Status tidak sah."}])
    recipe.status = status
    if status == "PUBLISHED" and recipe.published_at is None:
        recipe.published_at = utcnow()


def set_published(db: Session, recipe_id: int, publish: bool, actor_id: int | None = None) -> Recipe:
    recipe = get_recipe(db, recipe_id)
    _apply_status(recipe, "PUBLISHED" if publish else "DRAFT")
    refresh_category_count(db, recipe.category_id)
    db.commit()
    record_audit_event(
        "recipe_published" if publish else "recipe_unpublished", actor_user_id=actor_id, recipe_id=recipe_id
    )
    return recipe


def toggle_editors_pick(db: Session, recipe_id: int, actor_id: int | None = None) -> Recipe:
    recipe = get_recipe(db, recipe_id)
    recipe.is_editors_pick = not recipe.is_editors_pick
    db.commit()
    record_audit_event("editors_pick_toggled", actor_user_id=actor_id, recipe_id=recipe_id, value=recipe.is_editors_pick)
    return recipe


def delete_recipe(db: Session, recipe_id: int, actor_id: int | None = None) -> None:
    """Delete a recipe with everything that points at it.

    Dependent rows are removed here rather than left to ON DELETE, which sqlite
    does not enforce. Drafts published as this recipe keep their content and lose
    the link. Image files go once the transaction has committed.
    """
    recipe = get_recipe(db, recipe_id)
    category_id = recipe.category_id
    urls = [u for image in recipe.images for u in variant_urls(image)]
    db.query(Comment).filter(Comment.recipe_id == recipe_id).delete(synchronize_session=False)
    db.query(SavedRecipe).filter(SavedRecipe.recipe_id == recipe_id).delete(synchronize_session=False)
    db.query(UserLike).filter(UserLike.recipe_id == recipe_id).delete(synchronize_session=False)
    db.query(DraftRecipe).filter(DraftRecipe.published_recipe_id == recipe_id).update(
        {DraftRecipe.published_recipe_id: None}, synchronize_session=False
    )
    db.delete(recipe)
    refresh_category_count(db, category_id)
    db.commit()
    remove_files(urls)
    record_audit_event("recipe_deleted", actor_user_id=actor_id, recipe_id=recipe_id)


# ---- Categories & tags ----

def list_categories(db: Session) -> list[Category]:
    return db.query(Category).order_by(Category.name).all()


def _slug_free(db: Session, model, slug: str, exclude_id: int | None) -> None:
    q = db.query(model.id).filter(model.slug == slug)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("slug_taken", slug=slug)


def save_category(db: Session, payload: dict[str, Any], category_id: int | None = None) -> Category:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValidationError([{"field": "name", "message": "Nama diperlukan."}])
    slug = generate_slug(payload.get("slug") or name)
    if not slug:
        raise ValidationError([{"field": "slug", "message": "Slug tidak sah."}])
    _slug_free(db, Category, slug, category_id)
    if category_id is None:
        cat = Category(recipes_count=0)
        db.add(cat)
    else:
        cat = db.get(Category, category_id)
        if cat is None:
            raise NotFoundError("category_not_found")
    cat.name = name
    cat.slug = slug
    cat.description = (payload.get("description") or "").strip() or None
    cat.image = (payload.get("image") or "").strip() or None
    db.commit()
    return cat


def delete_category(db: Session, category_id: int) -> None:
    cat = db.get(Category, category_id)
    if cat is None:
        raise NotFoundError("category_not_found")
    db.query(Recipe).filter(Recipe.category_id == category_id).update(
        {Recipe.category_id: None}, synchronize_session=False
    )
    db.delete(cat)
    db.commit()


def list_tags(db: Session) -> list[tuple[Tag, int]]:
    return (
        db.query(Tag, func.count(recipe_tags.c.recipe_id))
        .outerjoin(recipe_tags, recipe_tags.c.tag_id == Tag.id)
        .group_by(Tag.id)
        .order_by(Tag.name)
        .all()
    )


def save_tag(db: Session, name: str | None, tag_id: int | None = None) -> Tag:
    name = (name or "").strip()
    if not name:
        raise ValidationError([{"field": "name", "message": "Nama diperlukan."}])
    slug = tag_slug(name)
    _slug_free(db, Tag, slug, tag_id)
    if tag_id is None:
        tag = Tag()
        db.add(tag)
    else:
        tag = db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError("tag_not_found")
    tag.name = name
    tag.slug = slug
    db.commit()
    return tag


def delete_tag(db: Session, tag_id: int) -> None:
    tag = db.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError("tag_not_found")
    db.delete(tag)
    db.commit()


# ---- Guides ----

def save_guide(db: Session, payload: dict[str, Any], guide_id: int | None = None, actor_id: int | None = None) -> Guide:
    title = (payload.get("title") or "").strip()
    if not title:
        raise ValidationError([{"field": "title", "message": "Tajuk diperlukan."}])
    if guide_id is None:
        guide = Guide(author_id=actor_id)
    else:
        guide = db.get(Guide, guide_id)
        if guide is None:
            raise NotFoundError("guide_not_found")
    requested = generate_slug(payload.get("slug") or "")
    if requested:
        _slug_free(db, Guide, requested, guide_id)
        guide.slug = requested
    elif not guide.slug:
        guide.slug = unique_slug(db, Guide, generate_slug(title), exclude_id=guide_id)
    guide.title = title
    guide.content = (payload.get("content") or "").strip() or None
    if "sections" in payload:
        sections = []
        for pos, sec in enumerate(payload.get("sections") or []):
            if not isinstance(sec, dict) or not (sec.get("content") or "").strip():
                continue
            sections.append(
                GuideSection(title=(sec.get("title") or "").strip() or None, content=sec["content"].strip(), position=pos)
            )
        guide.sections = sections
    if "tags" in payload:
        guide.tags = tags_for_names(db, _names(payload.get("tags")))
    if guide_id is None:
        db.add(guide)
    db.commit()
    return guide


def delete_guide(db: Session, guide_id: int) -> None:
    guide = db.get(Guide, guide_id)
    if guide is None:
        raise NotFoundError("guide_not_found")
    urls = [u for image in guide.images for u in variant_urls(image)]
    db.delete(guide)
    db.commit()
    remove_files(urls)


def dashboard_counts(db: Session) -> dict[str, int]:
    return {
        "recipes": db.query(func.count(Recipe.id)).scalar() or 0,
        "published": db.query(func.count(Recipe.id)).filter(Recipe.status == "PUBLISHED").scalar() or 0,
        "pendingComments": db.query(func.count(Comment.id)).filter(Comment.status == "PENDING").scalar() or 0,
        "subscribers": db.query(func.count(Subscriber.id)).scalar() or 0,
        "users": db.query(func.count(User.id)).scalar() or 0,
    }


__all__ = [
    "list_users",
    "set_user_status",
    "promote_user",
    "list_recipes",
    "get_recipe",
    "save_recipe",
    "set_published",
    "toggle_editors_pick",
    "delete_recipe",
    "list_categories",
    "save_category",
    "delete_category",
    "list_tags",
    "save_tag",
    "delete_tag",
    "save_guide",
    "delete_guide",
    "dashboard_counts",
]
