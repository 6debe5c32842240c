"""Account lifecycle: registration, email verification, password reset, sign-in,
profile and notification settings."""
from __future__ import annotations

import logging
import os
import re
import time
import uuid
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from flask import current_app
from sqlalchemy import func, inspect
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from .app_authz import AuthzError
from .errors import ConflictError, DomainError, NotFoundError, UpstreamError, ValidationError
from .mailer import MailError, send_reset_password_email, send_verification_email
from .models import PasswordResetToken, User, VerificationToken, utcnow
from .rate_limiter import RateLimitError

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")
MIN_PASSWORD_LENGTH = 8
VERIFY_TTL = timedelta(hours=24)
RESET_TTL = timedelta(hours=1)

# In-memory login lockout store: key -> {failures:int, first:ts, lock_until:ts?}
_LOGIN_FAILURES: dict[str, dict[str, float]] = {}


def valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_RE.match(email) is not None  # type: ignore[arg-type]


def password_errors(password: str, field: str = "password") -> list[dict[str, str]]:
    errs = []
    if len(password or "") < MIN_PASSWORD_LENGTH:
        errs.append({"field": field, "message": "Kata laluan mesti sekurang-kurangnya 8 aksara."})
    elif not (
        re.search(r"[a-z]", password) and re.search(r"[A-Z]", password) and re.search(r"[0-9]", password)
    ):
        errs.append(
            {"field": field, "message": "Kata laluan mesti mengandungi huruf kecil, huruf besar dan nombor."}
        )
    return errs


def _find_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()


def _username_taken(db: Session, username: str, exclude_id: int | None = None) -> bool:
    q = db.query(User.id).filter(func.lower(User.username) == username.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


def commit_with_mail(db: Session, send: Callable[..., None], *args: Any) -> None:
    """Send ``send(*args)`` for the pending rows and commit only if the provider took it.

    A refused message rolls the rows back and raises UpstreamError("mail_failed").
    """
    db.flush()
    try:
        send(*args)
    except MailError as e:
        db.rollback()
        log.warning("Mail %s failed, changes rolled back: %s", getattr(send, "__name__", send), e)
        raise UpstreamError("mail_failed") from e
    db.commit()


# ---- Registration & verification ----

def register(db: Session, name: str | None, username: str | None, email: str | None, password: str | None) -> User:
    name = (name or "").strip()
    username = (username or "").strip()
    email = (email or "").strip().lower()
    password = password or ""
    errors: list[dict[str, str]] = []
    if not name:
        errors.append({"field": "name", "message": "Nama diperlukan."})
    if not username:
        errors.append({"field": "username", "message": "Nama pengguna diperlukan."})
    elif not USERNAME_RE.match(username):
        errors.append({"field": "username", "message": "Nama pengguna tidak sah."})
    if not email:
        errors.append({"field": "email", "message": "Emel diperlukan."})
    elif not valid_email(email):
        errors.append({"field": "email", "message": "Format emel tidak sah."})
    errors.extend(password_errors(password))
    if not errors:
        if _find_by_email(db, email) is not None:
            errors.append({"field": "email", "message": "Emel telah didaftarkan."})
        if _username_taken(db, username):
            errors.append({"field": "username", "message": "Nama pengguna telah digunakan."})
    if errors:
        raise ValidationError(errors)

    user = User(
        name=name,
        username=username,
        email=email,
        password_hash=generate_password_hash(password),
        role="user",
        status="ACTIVE",
    )
    db.add(user)
    token = VerificationToken(identifier=email, token=str(uuid.uuid4()), expires=utcnow() + VERIFY_TTL)
    db.add(token)
    commit_with_mail(db, send_verification_email, email, token.token)
    db.refresh(user)
    log.info("Registered user id=%s", user.id)
    return user


def resend_verification(db: Session, email: str | None) -> None:
    """Replace any outstanding verification token for an unverified account and mail the new one."""
    email = (email or "").strip().lower()
    if not valid_email(email):
        raise ValidationError([{"field": "email", "message": "Format emel tidak sah."}])
    user = _find_by_email(db, email)
    if user is None:
        raise NotFoundError("user_not_found")
    if user.email_verified is not None:
        raise ConflictError("already_verified")
    db.query(VerificationToken).filter_by(identifier=email).delete()
    token = VerificationToken(identifier=email, token=str(uuid.uuid4()), expires=utcnow() + VERIFY_TTL)
    db.add(token)
    commit_with_mail(db, send_verification_email, email, token.token)
    log.info("Verification resent user id=%s", user.id)


def verify_email(db: Session, token: str | None) -> User:
    row = db.query(VerificationToken).filter_by(token=token).first() if token else None
    if row is None or row.expires < utcnow():
        raise DomainError(400, "bad_request", "invalid_or_expired_token")
    user = _find_by_email(db, row.identifier)
    if user is None:
        raise DomainError(400, "bad_request", "invalid_or_expired_token")
    user.email_verified = utcnow()
    db.delete(row)
    db.commit()
    return user


# ---- Password reset ----

def forgot_password(db: Session, email: str | None) -> None:
    email = (email or "").strip().lower()
    if not valid_email(email):
        raise ValidationError([{"field": "email", "message": "Format emel tidak sah."}])
    if _find_by_email(db, email) is None:
        raise NotFoundError("user_not_found")
    db.query(PasswordResetToken).filter_by(email=email).delete()
    token = PasswordResetToken(email=email, token=str(uuid.uuid4()), expires=utcnow() + RESET_TTL)
    db.add(token)
    commit_with_mail(db, send_reset_password_email, email, token.token)


def reset_password(db: Session, token: str | None, password: str | None) -> None:
    row = db.query(PasswordResetToken).filter_by(token=token).first() if token else None
    if row is None or row.expires < utcnow():
        raise DomainError(400, "bad_request", "invalid_or_expired_token")
    errs = password_errors(password or "")
    if errs:
        raise ValidationError(errs)
    user = _find_by_email(db, row.email)
    if user is None:
        raise DomainError(400, "bad_request", "invalid_or_expired_token")
    user.password_hash = generate_password_hash(password or "")
    db.delete(row)
    db.commit()


def change_password(db: Session, user: User, current: str | None, new: str | None, confirm: str | None) -> None:
    errors: list[dict[str, str]] = []
    if not user.password_hash or not check_password_hash(user.password_hash, current or ""):
        errors.append({"field": "currentPassword", "message": "Kata laluan semasa tidak betul."})
    errors.extend(password_errors(new or "", field="newPassword"))
    if (new or "") != (confirm or ""):
        errors.append({"field": "confirmPassword", "message": "Kata laluan tidak sepadan."})
    if errors:
        raise ValidationError(errors)
    user.password_hash = generate_password_hash(new or "")
    db.commit()


# ---- Profile ----

def update_profile(db: Session, user: User, name: str | None, username: str | None, bio: str | None) -> User:
    username = (username or "").strip()
    if username:
        if not USERNAME_RE.match(username):
            raise ValidationError([{"field": "username", "message": "Nama pengguna tidak sah."}])
        if _username_taken(db, username, exclude_id=user.id):
            raise ConflictError("username_taken")
    user.name = (name or "").strip() or None
    user.username = username or None
    user.bio = (bio or "").strip() or None
    db.commit()
    return user


def update_notifications(db: Session, user: User, subscribe_comment_reply: bool, subscribe_newsletter: bool) -> User:
    user.subscribe_comment_reply = bool(subscribe_comment_reply)
    user.subscribe_newsletter = bool(subscribe_newsletter)
    db.commit()
    return user


# ---- Sign-in ----

def _lockout_settings() -> tuple[int, int, int]:
    cfg = current_app.config.get("AUTH_RATE_LIMIT", {"window_sec": 300, "max_failures": 5, "lock_sec": 600})
    return cfg.get("window_sec", 300), cfg.get("max_failures", 5), cfg.get("lock_sec", 600)


def _prune_login_failures(now: float, window_sec: int) -> None:
    for key, rec in list(_LOGIN_FAILURES.items()):
        if rec.get("lock_until", 0) <= now and now - rec["first"] > window_sec:
            del _LOGIN_FAILURES[key]


def authenticate(db: Session, email: str | None, password: str | None, ip: str | None) -> User:
    """Check credentials; repeated failures per email+IP lock the pair out for a while."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError([{"field": "email", "message": "Emel dan kata laluan diperlukan."}])
    window_sec, max_failures, lock_sec = _lockout_settings()
    now = time.time()
    _prune_login_failures(now, window_sec)
    key = f"{email}:{ip or 'na'}"
    rec = _LOGIN_FAILURES.get(key)
    if rec:
        lock_until = rec.get("lock_until")
        if lock_until and lock_until > now:
            raise RateLimitError("login locked", retry_after=int(lock_until - now), limit="login")
        if now - rec["first"] > window_sec:
            rec["first"] = now
            rec["failures"] = 0
    else:
        rec = {"failures": 0, "first": now}
        _LOGIN_FAILURES[key] = rec

    user = _find_by_email(db, email)
    if user is None or not user.password_hash or not check_password_hash(user.password_hash, password):
        rec["failures"] += 1
        if rec["failures"] >= max_failures:
            rec["lock_until"] = now + lock_sec
            raise RateLimitError("login locked", retry_after=lock_sec, limit="login")
        raise DomainError(401, "invalid_credentials", "invalid_credentials")
    if user.status == "SUSPENDED":
        raise AuthzError("account_suspended")
    _LOGIN_FAILURES.pop(key, None)
    return user


def _reset_login_failures() -> None:  # pragma: no cover - tests only
    _LOGIN_FAILURES.clear()


def ensure_bootstrap_admin(db: Session) -> User | None:
    """Create (or promote) the admin named by SUPERUSER_EMAIL/SUPERUSER_PASSWORD."""
    email = (os.getenv("SUPERUSER_EMAIL") or "").strip().lower()
    password = os.getenv("SUPERUSER_PASSWORD")
    if not email or not password:
        return None
    if not inspect(db.bind).has_table("users"):
        log.info("Skipping bootstrap admin: users table missing")
        return None
    user = _find_by_email(db, email)
    if user is None:
        user = User(
            name="Admin",
            username=email.split("@", 1)[0],
            email=email,
            password_hash=generate_password_hash(password),
            email_verified=utcnow(),
            role="admin",
        )
        db.add(user)
    elif user.role != "admin":
        user.role = "admin"
    db.commit()
    return user


__all__ = [
    "register",
    "verify_email",
    "resend_verification",
    "commit_with_mail",
    "forgot_password",
    "reset_password",
    "change_password",
    "update_profile",
    "update_notifications",
    "authenticate",
    "ensure_bootstrap_admin",
    "password_errors",
    "valid_email",
]
