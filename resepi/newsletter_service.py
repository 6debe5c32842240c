"""Newsletter subscriptions: double opt-in signup, verification and admin management."""
from __future__ import annotations

import csv
import io
import secrets
from collections.abc import Iterable
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .account_service import commit_with_mail, valid_email
from .errors import ConflictError, DomainError, NotFoundError, ValidationError
from .mailer import send_newsletter_verification
from .models import Subscriber, utcnow
from .pagination import paginate_query

CSV_HEADER = ("Email", "Status", "Subscription Date", "Verification Date")
MISSING_TOKEN_MESSAGE = "Tiada token pengesahan disediakan."


def _new_token() -> str:
    return secrets.token_hex(32)


def serialize_subscriber(s: Subscriber) -> dict[str, Any]:
    return {
        "id": s.id,
        "email": s.email,
        "isVerified": s.is_verified,
        "verifiedAt": s.verified_at.isoformat() if s.verified_at else None,
        "createdAt": s.created_at.isoformat() if s.created_at else None,
    }


def subscribe(db: Session, email: str | None) -> Subscriber:
    email = (email or "").strip().lower()
    if not valid_email(email):
        raise ValidationError([{"field": "email", "message": "Sila masukkan alamat emel yang sah."}])
    sub = db.query(Subscriber).filter_by(email=email).first()
    if sub is not None and sub.is_verified:
        raise ConflictError("already_subscribed")
    if sub is None:
        sub = Subscriber(email=email, is_verified=False)
        db.add(sub)
    # Unverified re-signups get a fresh token and a fresh email
    sub.verification_token = _new_token()
    commit_with_mail(db, send_newsletter_verification, email, sub.verification_token)
    db.refresh(sub)
    return sub


def verify(db: Session, token: str | None) -> Subscriber:
    if not token:
        raise DomainError(400, "bad_request", MISSING_TOKEN_MESSAGE)
    sub = db.query(Subscriber).filter_by(verification_token=token).first()
    if sub is None:
        raise DomainError(400, "bad_request", "Token pengesahan tidak sah atau telah tamat tempoh.")
    sub.is_verified = True
    sub.verification_token = None
    sub.verified_at = utcnow()
    db.commit()
    return sub


# ---- Admin ----

def list_subscribers(
    db: Session, search: str | None = None, status: str | None = None, page: int = 1, size: int = 20
) -> tuple[list[Subscriber], int]:
    q = db.query(Subscriber)
    if search:
        q = q.filter(Subscriber.email.ilike(f"%{search.strip()}%"))
    if status == "verified":
        q = q.filter(Subscriber.is_verified.is_(True))
    elif status == "pending":
        q = q.filter(or_(Subscriber.is_verified.is_(False), Subscriber.is_verified.is_(None)))
    q = q.order_by(Subscriber.created_at.desc(), Subscriber.id.desc())
    return paginate_query(q, page, size)


def add_subscriber(db: Session, email: str | None, is_verified: bool = False) -> Subscriber:
    email = (email or "").strip().lower()
    if not email:
        raise DomainError(400, "bad_request", "email_required")
    if db.query(Subscriber.id).filter_by(email=email).first() is not None:
        raise ConflictError("already_subscribed")
    sub = Subscriber(email=email, is_verified=is_verified, verified_at=utcnow() if is_verified else None)
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


def update_subscriber(db: Session, subscriber_id: int, email: str | None, is_verified: bool) -> Subscriber:
    sub = db.get(Subscriber, subscriber_id)
    if sub is None:
        raise NotFoundError("subscriber_not_found")
    email = (email or "").strip().lower()
    if not email:
        raise DomainError(400, "bad_request", "email_required")
    taken = db.query(Subscriber.id).filter(Subscriber.email == email, Subscriber.id != subscriber_id).first()
    if taken is not None:
        raise ConflictError("already_subscribed")
    sub.email = email
    sub.is_verified = bool(is_verified)
    sub.verified_at = utcnow() if is_verified else None
    if is_verified:
        sub.verification_token = None
    db.commit()
    return sub


def delete_subscriber(db: Session, subscriber_id: int) -> None:
    sub = db.get(Subscriber, subscriber_id)
    if sub is None:
        raise NotFoundError("subscriber_not_found")
    db.delete(sub)
    db.commit()


def export_csv(rows: Iterable[Subscriber]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for s in rows:
        writer.writerow(
            [
                s.email,
                "Verified" if s.is_verified else "Pending",
                s.created_at.strftime("%Y-%m-%d") if s.created_at else "-",
                s.verified_at.strftime("%Y-%m-%d") if s.verified_at else "-",
            ]
        )
    return buf.getvalue()


def export_filename() -> str:
    return f"subscribers-{utcnow():%Y-%m-%d}.csv"


__all__ = [
    "subscribe",
    "verify",
    "list_subscribers",
    "add_subscriber",
    "update_subscriber",
    "delete_subscriber",
    "export_csv",
    "export_filename",
    "serialize_subscriber",
]
