"""AI metadata audit.

A published recipe is rendered to plain text and sent to the LLM, which
suggests times, difficulty, servings and tags. Suggestions land in the
``openai_*`` columns and stay there until an admin accepts or rejects them.
"""
from __future__ import annotations

import logging
import re
from typing import Any

from flask import current_app
from sqlalchemy.orm import Session, selectinload

from .audit_events import record_audit_event
from .errors import NotFoundError, UpstreamError
from .llm import LLMResponseError, chat_json, estimate_cost
from .models import DIFFICULTIES, SERVING_TYPES, Recipe, RecipeSection, utcnow
from .prompts import RECIPE_AUDIT_PROMPT
from .taxonomy import tags_for_names

log = logging.getLogger(__name__)

_DIFFICULTY_SYNONYMS = {
    "SUKAR": "HARD",
    "SUSAH": "HARD",
    "SUSAHSANGAT": "HARD",
    "SANGAT_SUKAR": "HARD",
    "MUDAH": "EASY",
    "SEDANG": "MEDIUM",
    "SEDERHANA": "MEDIUM",
    "PAKAR": "EXPERT",
}

_SERVING_SYNONYMS = {
    "SLICE": "SLICES",
    "PIECE": "PIECES",
    "BOWL": "BOWLS",
    "GLASS": "GLASSES",
    "PORTION": "PORTIONS",
    "PERSON": "PEOPLE",
    "ORANG": "PEOPLE",
    "KEPING": "SLICES",
    "BIJI": "PIECES",
    "MANGKUK": "BOWLS",
    "GELAS": "GLASSES",
}

_HOUR_UNITS = r"(?:jam|j|hours?|hrs?|h)"
_MIN_UNITS = r"(?:minit|min|mins|minutes?|m)"
_MINUTES_RE = re.compile(rf"^(\d+)\s*{_MIN_UNITS}?$")
_HOURS_RE = re.compile(rf"^(\d+(?:[.,]\d+)?)\s*{_HOUR_UNITS}(?:\s+(\d+)\s*{_MIN_UNITS})?$")

_UNTOUCHED_TITLES = ("Bahan Utama", "Penyediaan Utama")


def map_difficulty(value: Any) -> str:
    normalized = str(value or "").strip().upper().replace(" ", "_")
    if normalized in DIFFICULTIES:
        return normalized
    return _DIFFICULTY_SYNONYMS.get(normalized, "MEDIUM")


def map_serving_type(value: Any) -> str | None:
    if not value:
        return None
    normalized = str(value).strip().upper()
    if normalized in SERVING_TYPES:
        return normalized
    return _SERVING_SYNONYMS.get(normalized, "PEOPLE")


def parse_minutes(value: Any) -> int | None:
    """45 | "45" | "45 minit" | "1 jam" | "1 jam 30 minit" | "1.5 jam" -> minutes, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(round(value)) if value >= 0 else None
    text = str(value).strip().lower()
    if not text:
        return None
    m = _MINUTES_RE.match(text)
    if m:
        return int(m.group(1))
    m = _HOURS_RE.match(text)
    if m:
        hours = float(m.group(1).replace(",", "."))
        minutes = int(m.group(2)) if m.group(2) else 0
        return int(round(hours * 60)) + minutes
    return None


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    m = re.match(r"^\s*(\d+)", str(value))
    return int(m.group(1)) if m else None


def _section_label(section: RecipeSection) -> str:
    if section.type == "INGREDIENTS":
        label = "Bahan-Bahan"
    elif section.type == "INSTRUCTIONS":
        label = "Cara-Cara"
    else:
        label = section.title or "Bahagian Tanpa Tajuk"
    if section.title and section.title not in _UNTOUCHED_TITLES:
        label += f" ({section.title})"
    return label


def build_recipe_text(recipe: Recipe) -> str:
    lines = [f"Judul Resipi: {recipe.title}"]
    if recipe.description:
        lines.append(f"Penerangan: {recipe.description}")
    if recipe.short_description:
        lines.append(f"Ringkasan: {recipe.short_description}")
    if recipe.category is not None and recipe.category.name:
        lines.append(f"Kategori: {recipe.category.name}")
    if recipe.sections:
        lines.append("\nBahagian Resipi:\n------------------")
        for section in recipe.sections:
            lines.append(f"\n{_section_label(section)}:")
            if section.items:
                lines.extend(f"- {item.content}" for item in section.items)
            else:
                lines.append("(Tiada maklumat untuk bahagian ini)")
    if recipe.tips:
        lines.append("\nPetua / Tips:\n------------------")
        lines.extend(f"- {tip.content}" for tip in recipe.tips)
    if recipe.tags:
        lines.append(f"\nTags: {', '.join(t.name for t in recipe.tags)}")
    return "\n".join(lines)


def _load(db: Session, recipe_id: int) -> Recipe:
    recipe = (
        db.query(Recipe)
        .options(
            selectinload(Recipe.sections).selectinload(RecipeSection.items),
            selectinload(Recipe.tips),
            selectinload(Recipe.tags),
            selectinload(Recipe.category),
        )
        .filter(Recipe.id == recipe_id)
        .first()
    )
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    return recipe


def audit_recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = _load(db, recipe_id)
    model = current_app.config.get("OPENAI_AUDIT_MODEL") or "gpt-3.5-turbo"
    try:
        result = chat_json(RECIPE_AUDIT_PROMPT, build_recipe_text(recipe), model=model, temperature=0)
    except LLMResponseError as e:
        raise UpstreamError("llm_failed", reason=str(e)) from e
    data = result.data if isinstance(result.data, dict) else {}

    recipe.openai_prep_time = parse_minutes(data.get("prepTime"))
    recipe.openai_cook_time = parse_minutes(data.get("cookTime"))
    recipe.openai_total_time = parse_minutes(data.get("totalTime"))
    recipe.openai_difficulty = map_difficulty(data["difficulty"]) if data.get("difficulty") else None
    recipe.openai_servings = parse_int(data.get("servings"))
    recipe.openai_serving_type = map_serving_type(data.get("servingType"))
    tags = data.get("tags")
    recipe.openai_tags = [str(t) for t in tags] if isinstance(tags, list) else None
    recipe.openai_audited_at = utcnow()
    db.commit()
    log.info(
        "Audited recipe id=%s model=%s tokens=%s cost=$%.6f",
        recipe.id,
        result.model,
        result.total_tokens,
        estimate_cost(result.total_tokens),
    )
    return recipe


def pending_audits(db: Session) -> list[Recipe]:
    return (
        db.query(Recipe)
        .options(selectinload(Recipe.tags))
        .filter(Recipe.openai_audited_at.is_not(None))
        .order_by(Recipe.openai_audited_at.desc(), Recipe.id.desc())
        .all()
    )


def unaudited_recipes(db: Session, limit: int) -> list[Recipe]:
    return (
        db.query(Recipe)
        .filter(Recipe.status == "PUBLISHED", Recipe.openai_audited_at.is_(None))
        .order_by(Recipe.id)
        .limit(limit)
        .all()
    )


def _clear(recipe: Recipe) -> None:
    recipe.openai_prep_time = None
    recipe.openai_cook_time = None
    recipe.openai_total_time = None
    recipe.openai_difficulty = None
    recipe.openai_tags = None
    recipe.openai_servings = None
    recipe.openai_serving_type = None
    recipe.openai_audited_at = None


def accept_audit(db: Session, recipe_id: int, actor_id: int | None = None) -> Recipe:
    recipe = _load(db, recipe_id)
    recipe.prep_time = recipe.openai_prep_time if recipe.openai_prep_time is not None else recipe.prep_time
    recipe.cook_time = recipe.openai_cook_time if recipe.openai_cook_time is not None else recipe.cook_time
    recipe.total_time = recipe.openai_total_time if recipe.openai_total_time is not None else recipe.total_time
    recipe.difficulty = recipe.openai_difficulty or recipe.difficulty
    recipe.servings = recipe.openai_servings if recipe.openai_servings is not None else recipe.servings
    recipe.serving_type = recipe.openai_serving_type or recipe.serving_type
    if recipe.openai_tags:
        recipe.tags = tags_for_names(db, recipe.openai_tags)
    _clear(recipe)
    db.commit()
    record_audit_event("recipe_audit_accepted", actor_user_id=actor_id, recipe_id=recipe_id)
    return recipe


def reject_audit(db: Session, recipe_id: int, actor_id: int | None = None) -> Recipe:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    _clear(recipe)
    db.commit()
    record_audit_event("recipe_audit_rejected", actor_user_id=actor_id, recipe_id=recipe_id)
    return recipe


def serialize_audit(r: Recipe) -> dict[str, Any]:
    return {
        "id": r.id,
        "title": r.title,
        "slug": r.slug,
        "current": {
            "prepTime": r.prep_time,
            "cookTime": r.cook_time,
            "totalTime": r.total_time,
            "difficulty": r.difficulty,
            "servings": r.servings,
            "servingType": r.serving_type,
            "tags": [t.name for t in r.tags],
        },
        "suggested": {
            "prepTime": r.openai_prep_time,
            "cookTime": r.openai_cook_time,
            "totalTime": r.openai_total_time,
            "difficulty": r.openai_difficulty,
            "servings": r.openai_servings,
            "servingType": r.openai_serving_type,
            "tags": r.openai_tags or [],
        },
        "auditedAt": r.openai_audited_at.isoformat() if r.openai_audited_at else None,
    }


__all__ = [
    "build_recipe_text",
    "map_difficulty",
    "map_serving_type",
    "parse_minutes",
    "audit_recipe",
    "pending_audits",
    "unaudited_recipes",
    "accept_audit",
    "reject_audit",
    "serialize_audit",
]
