from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class Config:
    secret_key: str = "change-me"
    database_url: str = "sqlite:///dev.db"
    site_url: str = "http://localhost:5000"
    upload_dir: str = "static/uploads/recipes"
    max_file_size: int = 5 * 1024 * 1024  # 5MB
    allowed_types: list[str] = field(default_factory=lambda: ["image/jpeg", "image/png", "image/webp"])
    mail_backend: str = "log"
    mail_from: str = "noreply@resepichenom.com"
    contact_email: str = "notification@resepichenom.com"
    aws_ses_region: str = "ap-southeast-1"
    openai_api_key: str | None = None
    openai_draft_model: str = "gpt-4o"
    openai_audit_model: str = "gpt-3.5-turbo"
    cors_allowed_origins: list[str] = field(default_factory=list)
    strict_csrf_env: bool = False

    @classmethod
    def from_env(cls) -> Config:
        types = os.getenv("ALLOWED_TYPES", "image/jpeg,image/png,image/webp")
        cors = os.getenv("CORS_ALLOW_ORIGINS", "")
        return cls(
            secret_key=os.getenv("SECRET_KEY", "change-me"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///dev.db"),
            site_url=os.getenv("SITE_URL", "http://localhost:5000").rstrip("/"),
            upload_dir=os.getenv("UPLOAD_DIR", "static/uploads/recipes"),
            max_file_size=int(os.getenv("MAX_FILE_SIZE", "5242880")),
            allowed_types=[t.strip() for t in types.split(",") if t.strip()],
            mail_backend=os.getenv("MAIL_BACKEND", "log").strip().lower() or "log",
            mail_from=os.getenv("MAIL_FROM", "noreply@resepichenom.com"),
            contact_email=os.getenv("CONTACT_EMAIL", "notification@resepichenom.com"),
            aws_ses_region=os.getenv("AWS_SES_REGION_NAME", "ap-southeast-1"),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_draft_model=os.getenv("OPENAI_DRAFT_MODEL", "gpt-4o"),
            openai_audit_model=os.getenv("OPENAI_AUDIT_MODEL", "gpt-3.5-turbo"),
            cors_allowed_origins=[o for o in [c.strip() for c in cors.split(",")] if o],
            strict_csrf_env=bool(int(os.getenv("RESEPI_STRICT_CSRF", "0"))),
        )

    def override(self, d: dict):
        for k, v in d.items():
            if hasattr(self, k):
                setattr(self, k, v)

    def to_flask_dict(self):
        if self.max_file_size <= 0:
            raise ValueError("MAX_FILE_SIZE must be a positive number")
        if not self.allowed_types:
            raise ValueError("ALLOWED_TYPES must contain at least one mime type")
        return {
            "SECRET_KEY": self.secret_key,
            "SQLALCHEMY_DATABASE_URI": self.database_url,
            "SITE_URL": self.site_url,
            "UPLOAD_DIR": self.upload_dir,
            # Flask rejects larger bodies before the upload validator runs; leave headroom for form fields
            "MAX_CONTENT_LENGTH": self.max_file_size + 1024 * 1024,
            "MAX_FILE_SIZE": self.max_file_size,
            "ALLOWED_TYPES": self.allowed_types,
            "MAIL_BACKEND": self.mail_backend,
            "MAIL_FROM": self.mail_from,
            "CONTACT_EMAIL": self.contact_email,
            "AWS_SES_REGION_NAME": self.aws_ses_region,
            "OPENAI_API_KEY": self.openai_api_key,
            "OPENAI_DRAFT_MODEL": self.openai_draft_model,
            "OPENAI_AUDIT_MODEL": self.openai_audit_model,
            "CORS_ALLOWED_ORIGINS": self.cors_allowed_origins,
            "RESEPI_STRICT_CSRF": self.strict_csrf_env,
            "STRICT_CSRF_IN_TESTS": bool(int(os.getenv("STRICT_CSRF_IN_TESTS", "0"))),
            # Harden session cookie defaults (still allow override in tests)
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SAMESITE": "Lax",
        }
