"""Regenerate medium and thumbnail variants for every stored recipe image.

Usage:
  python scripts/process_existing_images.py

Needed after changing the variant sizes in resepi/images.py.
"""
from __future__ import annotations

import os
import sys

sys.path.append(os.getcwd())

from resepi import create_app
from resepi.db import get_new_session
from resepi.images import regenerate_variants


def main() -> int:
    app = create_app()
    with app.app_context():
        db = get_new_session()
        try:
            done = regenerate_variants(db)
        finally:
            db.close()
    print(f"Regenerated variants for {done} image(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
