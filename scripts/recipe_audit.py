"""Ask the LLM to review timings, difficulty, servings and tags of published recipes.

Suggestions are stored on the recipe and wait for an admin to accept or
reject them at /admin/audits.

Usage:
  python scripts/recipe_audit.py --limit 20
  python scripts/recipe_audit.py --recipe-id 42
"""
from __future__ import annotations

import argparse
import os
import sys

sys.path.append(os.getcwd())

from resepi import create_app
from resepi.db import get_new_session
from resepi.errors import DomainError
from resepi.recipe_audit import audit_recipe, unaudited_recipes


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate AI audit suggestions for recipes.")
    p.add_argument("--limit", type=int, default=10, help="Maximum recipes to audit (default 10).")
    p.add_argument("--recipe-id", type=int, default=None, help="Audit a single recipe, audited or not.")
    p.add_argument("--dry-run", action="store_true", help="List candidates without calling the API.")
    return p.parse_args()


def main() -> int:
    args = _parse_args()
    app = create_app()
    failures = 0
    with app.app_context():
        db = get_new_session()
        try:
            if args.recipe_id is not None:
                ids = [args.recipe_id]
            else:
                ids = [r.id for r in unaudited_recipes(db, max(args.limit, 0))]
            print(f"Auditing {len(ids)} recipe(s)")
            for rid in ids:
                if args.dry_run:
                    print(f"  would audit id={rid}")
                    continue
                try:
                    recipe = audit_recipe(db, rid)
                except DomainError as e:
                    db.rollback()
                    failures += 1
                    print(f"  id={rid} FAILED: {e.detail} {e.extra or ''}", file=sys.stderr)
                    continue
                print(
                    f"  id={rid} {recipe.title!r}: prep={recipe.openai_prep_time} cook={recipe.openai_cook_time} "
                    f"difficulty={recipe.openai_difficulty} tags={recipe.openai_tags}"
                )
        finally:
            db.close()
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
