from __future__ import annotations

from flask import Blueprint, jsonify, request

from .db import get_session
from .http_limits import limit
from .search import api_search, search_suggestions

bp = Blueprint("search_api", __name__, url_prefix="/api/search")


@bp.get("")
def search():
    db = get_session()
    try:
        return jsonify(api_search(db, request.args.to_dict()))
    finally:
        db.close()


@bp.get("/suggestions")
@limit("search_suggestions")
def suggestions():
    db = get_session()
    try:
        return jsonify({"suggestions": search_suggestions(db, request.args.get("q"))})
    finally:
        db.close()
