from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session, selectinload

from .errors import NotFoundError
from .models import Recipe, SavedRecipe
from .recipe_service import serialize_card


def serialize_saved(s: SavedRecipe) -> dict[str, Any]:
    return {
        "id": s.id,
        "recipeId": s.recipe_id,
        "notes": s.notes,
        "createdAt": s.created_at.isoformat() if s.created_at else None,
        "recipe": serialize_card(s.recipe) if s.recipe else None,
    }


def save_recipe(db: Session, user_id: int, recipe_id: int) -> SavedRecipe:
    """Idempotent: saving twice returns the existing row."""
    if db.get(Recipe, recipe_id) is None:
        raise NotFoundError("recipe_not_found")
    existing = db.query(SavedRecipe).filter_by(user_id=user_id, recipe_id=recipe_id).first()
    if existing is not None:
        return existing
    row = SavedRecipe(user_id=user_id, recipe_id=recipe_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _owned(db: Session, user_id: int, saved_id: int) -> SavedRecipe:
    row = db.query(SavedRecipe).filter_by(id=saved_id, user_id=user_id).first()
    if row is None:
        raise NotFoundError("saved_recipe_not_found")
    return row


def unsave(db: Session, user_id: int, saved_id: int) -> None:
    db.delete(_owned(db, user_id, saved_id))
    db.commit()


def update_notes(db: Session, user_id: int, saved_id: int, notes: str | None) -> SavedRecipe:
    row = _owned(db, user_id, saved_id)
    row.notes = (notes or "").strip() or None
    db.commit()
    db.refresh(row)
    return row


def is_saved(db: Session, user_id: int, recipe_id: int) -> SavedRecipe | None:
    return db.query(SavedRecipe).filter_by(user_id=user_id, recipe_id=recipe_id).first()


def list_saved(db: Session, user_id: int) -> list[SavedRecipe]:
    return (
        db.query(SavedRecipe)
        .options(selectinload(SavedRecipe.recipe).selectinload(Recipe.images))
        .filter(SavedRecipe.user_id == user_id)
        .order_by(SavedRecipe.created_at.desc(), SavedRecipe.id.desc())
        .all()
    )


__all__ = ["save_recipe", "unsave", "update_notes", "is_saved", "list_saved", "serialize_saved"]
