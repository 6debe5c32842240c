"""Fold buffered recipe view counts into recipes.view_count.

Usage:
  python scripts/flush_recipe_counters.py

Run from cron every few minutes. Uses REDIS_URL when set, otherwise the
in-process store (which only makes sense inside a long-lived worker).
"""
from __future__ import annotations

import argparse
import os
import sys

sys.path.append(os.getcwd())

from resepi import create_app
from resepi.counters import flush_view_counters
from resepi.db import get_new_session


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Flush buffered recipe view counters to the database.")
    p.add_argument("--quiet", action="store_true", help="Only print on error.")
    return p.parse_args()


def main() -> int:
    args = _parse_args()
    app = create_app()
    with app.app_context():
        db = get_new_session()
        try:
            updated = flush_view_counters(db)
        finally:
            db.close()
    if not args.quiet:
        print(f"Flushed view counters for {updated} recipe(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
