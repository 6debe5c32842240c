"""Run ResepiCheNom locally with the Flask reloader.

    python run.py            # http://127.0.0.1:5000
    PORT=8080 python run.py

Values in .env are loaded first. DEV_CREATE_ALL=1 creates missing tables on start,
and SUPERUSER_EMAIL/SUPERUSER_PASSWORD seed the first admin account.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from resepi import create_app

load_dotenv()

app = create_app()


def main() -> None:  # pragma: no cover
    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)
    app.run(
        debug=os.getenv("FLASK_DEBUG", "1") == "1",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
