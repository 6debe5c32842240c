"""Recipe view and like counters.

Page views are accumulated in a hash (``recipe:views``) instead of writing the
recipes row on every request; ``flush_view_counters`` folds them into
``Recipe.view_count``. Backend chosen via COUNTERS_BACKEND (memory | redis).

Likes are durable: one UserLike row per (user, recipe) plus the denormalised
``Recipe.like_count``.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Protocol

import redis
from sqlalchemy import update
from sqlalchemy.orm import Session

from .errors import DomainError, NotFoundError
from .models import Recipe, UserLike

log = logging.getLogger(__name__)

VIEWS_KEY = "recipe:views"


class CounterStore(Protocol):
    def incr(self, key: str, field: str, amount: int = 1) -> int: ...  # pragma: no cover
    def get(self, key: str, field: str) -> int: ...  # pragma: no cover
    def drain(self, key: str) -> dict[str, int]: ...  # pragma: no cover


class MemoryCounterStore:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, int]] = {}
        self._lock = threading.Lock()

    def incr(self, key: str, field: str, amount: int = 1) -> int:
        with self._lock:
            bucket = self._data.setdefault(key, {})
            bucket[field] = bucket.get(field, 0) + amount
            return bucket[field]

    def get(self, key: str, field: str) -> int:
        return self._data.get(key, {}).get(field, 0)

    def drain(self, key: str) -> dict[str, int]:
        with self._lock:
            return self._data.pop(key, {})


class RedisCounterStore:
    def __init__(self, url: str) -> None:
        self._client = redis.Redis.from_url(url, decode_responses=True)

    def incr(self, key: str, field: str, amount: int = 1) -> int:
        return int(self._client.hincrby(key, field, amount))

    def get(self, key: str, field: str) -> int:
        raw = self._client.hget(key, field)
        return int(raw) if raw else 0

    def drain(self, key: str) -> dict[str, int]:
        # HGETALL + DEL in one transaction so increments are never lost between the two
        pipe = self._client.pipeline(transaction=True)
        pipe.hgetall(key)
        pipe.delete(key)
        raw, _ = pipe.execute()
        return {k: int(v) for k, v in (raw or {}).items()}


_store: CounterStore | None = None


def get_store() -> CounterStore:
    global _store
    if _store is None:
        backend = os.getenv("COUNTERS_BACKEND", "memory").strip().lower()
        if backend == "redis":
            _store = RedisCounterStore(os.getenv("REDIS_URL") or "redis://localhost:6379/0")
        else:
            _store = MemoryCounterStore()
    return _store


def _test_reset() -> None:  # pragma: no cover - invoked by tests explicitly
    global _store
    _store = None


def record_view(recipe_id: int) -> int:
    return get_store().incr(VIEWS_KEY, str(recipe_id))


def pending_views(recipe_id: int) -> int:
    return get_store().get(VIEWS_KEY, str(recipe_id))


def total_views(recipe: Recipe) -> int:
    return (recipe.view_count or 0) + pending_views(recipe.id)


def flush_view_counters(db: Session) -> int:
    """Move pending views into recipes.view_count; returns the number of recipes updated."""
    counts = get_store().drain(VIEWS_KEY)
    updated = 0
    for recipe_id, count in counts.items():
        if not recipe_id.isdigit() or count <= 0:
            log.warning("Skipping malformed view counter field=%s count=%s", recipe_id, count)
            continue
        res = db.execute(
            update(Recipe)
            .where(Recipe.id == int(recipe_id))
            .values(view_count=Recipe.view_count + count)
        )
        updated += res.rowcount or 0
    db.commit()
    log.info("Flushed view counters for %d recipes", updated)
    return updated


# ---- Likes ----

def like_status(db: Session, recipe_id: int, user_id: int | None) -> dict[str, object]:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    already = False
    if user_id is not None:
        already = (
            db.query(UserLike.id).filter(UserLike.user_id == user_id, UserLike.recipe_id == recipe_id).first()
            is not None
        )
    return {"likeCount": recipe.like_count or 0, "alreadyLiked": already}


def like_recipe(db: Session, recipe_id: int, user_id: int) -> dict[str, object]:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    exists = db.query(UserLike.id).filter(UserLike.user_id == user_id, UserLike.recipe_id == recipe_id).first()
    if exists is not None:
        raise DomainError(400, "bad_request", "already_liked")
    db.add(UserLike(user_id=user_id, recipe_id=recipe_id))
    db.execute(update(Recipe).where(Recipe.id == recipe_id).values(like_count=Recipe.like_count + 1))
    db.commit()
    db.refresh(recipe)
    return {"likeCount": recipe.like_count, "alreadyLiked": True}


__all__ = [
    "VIEWS_KEY",
    "MemoryCounterStore",
    "RedisCounterStore",
    "get_store",
    "record_view",
    "pending_views",
    "total_views",
    "flush_view_counters",
    "like_status",
    "like_recipe",
]
