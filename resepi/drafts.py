"""AI-generated recipe drafts.

An admin pastes a video transcript; the LLM turns it into a structured
recipe which is stored as a DraftRecipe until it is reviewed and published.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from flask import current_app
from sqlalchemy.orm import Session

from .audit_events import record_audit_event
from .errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from .llm import LLMResponseError, chat_json, estimate_cost
from .models import (
    DIFFICULTIES,
    SECTION_TYPES,
    Category,
    DraftRecipe,
    Recipe,
    RecipeItem,
    RecipeSection,
    RecipeTip,
    utcnow,
)
from .prompts import RECIPE_DRAFT_PROMPT
from .recipe_audit import map_serving_type, parse_int, parse_minutes
from .slugs import generate_slug
from .taxonomy import refresh_category_count, tags_for_names

log = logging.getLogger(__name__)

DEFAULT_TITLE = "Resepi Tanpa Nama"
DEFAULT_DESCRIPTION = "Tiada keterangan terperinci tersedia untuk resepi ini."
DEFAULT_SECTION_TITLE = "Untitled Section"

EDITABLE_FIELDS = (
    "title",
    "slug",
    "short_description",
    "description",
    "prep_time",
    "cook_time",
    "total_time",
    "servings",
    "serving_type",
    "difficulty",
    "tags",
    "tips",
    "sections",
)


def _item_text(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("content") or "").strip()
    return str(item or "").strip()


def normalize_draft(data: Any) -> dict[str, Any]:
    """Coerce a model reply into draft columns, falling back where fields are missing or malformed."""
    d = data if isinstance(data, dict) else {}
    title = d.get("title")
    difficulty = d.get("difficulty")
    tips = d.get("tips")
    return {
        "title": title.strip() if isinstance(title, str) and title.strip() else DEFAULT_TITLE,
        "short_description": d.get("shortDescription") or "",
        "description": d.get("description") or DEFAULT_DESCRIPTION,
        "difficulty": difficulty if difficulty in DIFFICULTIES else "MEDIUM",
        "prep_time": parse_minutes(d.get("prepTime")),
        "cook_time": parse_minutes(d.get("cookTime")),
        "total_time": parse_minutes(d.get("totalTime")),
        "servings": parse_int(d.get("servings")),
        "serving_type": map_serving_type(d.get("servingType")),
        "tags": [str(t) for t in d["tags"]] if isinstance(d.get("tags"), list) else [],
        "tips": [t for t in (_item_text(x) for x in tips) if t] if isinstance(tips, list) else [],
        "sections": d["sections"] if isinstance(d.get("sections"), list) else [],
    }


def generate_draft(db: Session, user_id: int | None, script: str | None, prompt: str | None = None) -> DraftRecipe:
    text = (script or "").strip()
    if not text:
        raise ValidationError([{"field": "script", "message": "Please provide a script."}])
    system = (prompt or "").strip() or RECIPE_DRAFT_PROMPT
    model = current_app.config.get("OPENAI_DRAFT_MODEL") or "gpt-4o"
    try:
        result = chat_json(system, text, model=model, temperature=0)
    except LLMResponseError as e:
        raise UpstreamError("llm_failed", reason=str(e)) from e

    fields = normalize_draft(result.data)
    draft = DraftRecipe(
        **fields,
        source_script=text,
        openai_model=result.model,
        openai_tokens_used=result.total_tokens,
        openai_cost=str(estimate_cost(result.total_tokens)),
        raw_openai_response=result.raw,
        prompt_used=system,
        user_id=user_id,
    )
    db.add(draft)
    db.commit()
    db.refresh(draft)
    log.info("Generated draft id=%s tokens=%s", draft.id, result.total_tokens)
    return draft


def list_drafts(db: Session) -> list[DraftRecipe]:
    return db.query(DraftRecipe).order_by(DraftRecipe.created_at.desc(), DraftRecipe.id.desc()).all()


def get_draft(db: Session, draft_id: int) -> DraftRecipe:
    draft = db.get(DraftRecipe, draft_id)
    if draft is None:
        raise NotFoundError("draft_not_found")
    return draft


def update_draft(db: Session, draft_id: int, fields: dict[str, Any]) -> DraftRecipe:
    draft = get_draft(db, draft_id)
    for key in EDITABLE_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key in ("prep_time", "cook_time", "total_time"):
            value = parse_minutes(value)
        elif key == "servings":
            value = parse_int(value)
        elif key == "difficulty":
            value = value if value in DIFFICULTIES else "MEDIUM"
        elif key == "serving_type":
            value = map_serving_type(value)
        elif key in ("tags", "tips", "sections") and isinstance(value, str):
            try:
                value = json.loads(value) if value.strip() else []
            except json.JSONDecodeError as e:
                raise ValidationError([{"field": key, "message": "Invalid JSON"}]) from e
        if key == "title" and not (value or "").strip():
            raise ValidationError([{"field": "title", "message": "Title is required"}])
        setattr(draft, key, value)
    db.commit()
    return draft


def delete_draft(db: Session, draft_id: int) -> None:
    db.delete(get_draft(db, draft_id))
    db.commit()


def publish_draft(
    db: Session,
    draft_id: int,
    slug: str | None = None,
    category_id: int | None = None,
    actor_id: int | None = None,
) -> Recipe:
    draft = get_draft(db, draft_id)
    final_slug = generate_slug(slug or draft.slug or draft.title)
    if not final_slug:
        raise ValidationError([{"field": "slug", "message": "Slug is required"}])
    if db.query(Recipe.id).filter(Recipe.slug == final_slug).first() is not None:
        raise ConflictError("slug_taken", slug=final_slug)
    if category_id is not None and db.get(Category, category_id) is None:
        raise NotFoundError("category_not_found")

    now = utcnow()
    recipe = Recipe(
        title=draft.title,
        slug=final_slug,
        short_description=draft.short_description,
        description=draft.description,
        prep_time=draft.prep_time,
        cook_time=draft.cook_time,
        total_time=draft.total_time,
        servings=draft.servings,
        serving_type=draft.serving_type,
        difficulty=draft.difficulty or "MEDIUM",
        status="PUBLISHED",
        published_at=now,
        category_id=category_id,
        user_id=draft.user_id or actor_id,
    )
    for pos, sec in enumerate(draft.sections or []):
        sec = sec if isinstance(sec, dict) else {}
        sec_type = sec.get("type") if sec.get("type") in SECTION_TYPES else "INGREDIENTS"
        section = RecipeSection(title=sec.get("title") or DEFAULT_SECTION_TITLE, type=sec_type, position=pos)
        contents = [c for c in (_item_text(i) for i in (sec.get("items") or [])) if c]
        section.items = [RecipeItem(content=c, position=i) for i, c in enumerate(contents)]
        recipe.sections.append(section)
    recipe.tips = [RecipeTip(content=t) for t in (_item_text(x) for x in (draft.tips or [])) if t]
    recipe.tags = tags_for_names(db, draft.tags or [])
    db.add(recipe)
    db.flush()
    draft.published_recipe_id = recipe.id
    draft.slug = final_slug
    refresh_category_count(db, category_id)
    db.commit()
    db.refresh(recipe)
    record_audit_event("draft_published", actor_user_id=actor_id, draft_id=draft.id, recipe_id=recipe.id)
    return recipe


def serialize_draft(d: DraftRecipe) -> dict[str, Any]:
    return {
        "id": d.id,
        "title": d.title,
        "slug": d.slug,
        "shortDescription": d.short_description,
        "description": d.description,
        "prepTime": d.prep_time,
        "cookTime": d.cook_time,
        "totalTime": d.total_time,
        "servings": d.servings,
        "servingType": d.serving_type,
        "difficulty": d.difficulty,
        "tags": d.tags or [],
        "tips": d.tips or [],
        "sections": d.sections or [],
        "openaiModel": d.openai_model,
        "openaiTokensUsed": d.openai_tokens_used,
        "openaiCost": d.openai_cost,
        "publishedRecipeId": d.published_recipe_id,
        "createdAt": d.created_at.isoformat() if d.created_at else None,
    }


__all__ = [
    "generate_draft",
    "normalize_draft",
    "list_drafts",
    "get_draft",
    "update_draft",
    "delete_draft",
    "publish_draft",
    "serialize_draft",
]
