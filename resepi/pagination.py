"""Page arithmetic shared by the public listings, search and the admin tables.

Pages are 1-based. HTML listings are forgiving about ``?page=`` (junk means page 1);
the JSON admin endpoints are strict and answer 400 through PaginationError.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Generic, Literal, TypeVar

from sqlalchemy.orm import Query
from typing_extensions import TypedDict

T = TypeVar("T")

__all__ = [
    "PageRequest",
    "PageMeta",
    "PageResponse",
    "Pager",
    "PaginationError",
    "lenient_page",
    "parse_page_params",
    "page_count",
    "pager",
    "paginate_query",
    "paginate_sequence",
    "make_page_response",
]


class PageRequest(TypedDict):
    page: int  # 1-based
    size: int


class PageMeta(TypedDict):
    page: int
    size: int
    total: int
    pages: int


class PageResponse(TypedDict, Generic[T]):  # type: ignore[misc]
    ok: Literal[True]
    items: list[T]
    meta: PageMeta


class Pager(TypedDict):
    """What the ``pagination`` macro in _macros.html needs."""

    page: int
    pages: int
    total: int


class PaginationError(ValueError):
    """Raised when pagination query params are invalid."""


DEFAULT_SIZE = 12
MAX_SIZE = 100


def lenient_page(raw: Any) -> int:
    text = str(raw or "").strip()
    return max(int(text), 1) if text.isdigit() else 1


def _positive(raw: Any, name: str, default: int) -> int:
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise PaginationError(f"invalid {name} parameter") from e
    if value < 1:
        raise PaginationError(f"{name} must be >= 1")
    return value


def parse_page_params(args: Mapping[str, Any], default_size: int = DEFAULT_SIZE) -> PageRequest:
    """Strict ?page=&size= parsing for JSON endpoints; size is capped at MAX_SIZE."""
    page = _positive(args.get("page"), "page", 1)
    size = min(_positive(args.get("size"), "size", default_size), MAX_SIZE)
    return PageRequest(page=page, size=size)


def page_count(total: int, size: int) -> int:
    return (total + size - 1) // size if size else 0


def pager(page: int, total: int, size: int) -> Pager:
    return Pager(page=page, pages=page_count(total, size), total=total)


def paginate_query(q: Query, page: int, size: int) -> tuple[list[Any], int]:
    """Rows for one page of an already ordered query, plus the unpaged row count."""
    page = max(page, 1)
    total = q.order_by(None).count()
    return q.offset((page - 1) * size).limit(size).all(), total


def paginate_sequence(seq: Sequence[T], page_req: PageRequest) -> PageResponse[T]:
    start = (page_req["page"] - 1) * page_req["size"]
    return make_page_response(seq[start : start + page_req["size"]], page_req, len(seq))


def make_page_response(items: Sequence[T], page_req: PageRequest, total: int) -> PageResponse[T]:
    return PageResponse(  # type: ignore[call-arg]
        ok=True,
        items=list(items),
        meta=PageMeta(
            page=page_req["page"],
            size=page_req["size"],
            total=total,
            pages=page_count(total, page_req["size"]),
        ),
    )
