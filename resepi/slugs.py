"""URL slug helpers for recipes, categories, tags and guides."""
from __future__ import annotations

import re

from sqlalchemy.orm import Session

_INVALID = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def generate_slug(text: str) -> str:
    """'Nasi Lemak  (Special)!' -> 'nasi-lemak-special'."""
    slug = _INVALID.sub("", (text or "").lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def tag_slug(name: str) -> str:
    # Tags keep non-ascii letters; only case and spacing are normalised
    return _WHITESPACE.sub("-", (name or "").strip().lower())


def tag_name_from_slug(slug: str) -> str:
    return slug.replace("-", " ")


def unique_slug(db: Session, model, base: str, exclude_id: int | None = None) -> str:
    """Append -2, -3 ... until no row of `model` other than `exclude_id` holds the slug."""
    root = base or "item"
    candidate = root
    n = 2
    while True:
        q = db.query(model.id).filter(model.slug == candidate)
        if exclude_id is not None:
            q = q.filter(model.id != exclude_id)
        if q.first() is None:
            return candidate
        candidate = f"{root}-{n}"
        n += 1


__all__ = ["generate_slug", "tag_slug", "tag_name_from_slug", "unique_slug"]
