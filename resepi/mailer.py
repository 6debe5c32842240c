"""Outgoing email.

Backends (MAIL_BACKEND): ``log`` writes the message to the log (development
default), ``memory`` keeps an outbox list (tests), ``ses`` sends through
Amazon SES via boto3.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

log = logging.getLogger(__name__)


class MailError(Exception):
    """Raised when the provider refuses or fails to accept a message."""


MAIL_FAILED_MESSAGE = "Emel tidak dapat dihantar buat masa ini. Sila cuba lagi sebentar."


@dataclass
class OutgoingMail:
    to: str
    subject: str
    html: str
    text: str | None = None


class Mailer(Protocol):
    def send(self, message: OutgoingMail) -> None: ...  # pragma: no cover - interface only


class LogMailer:
    def send(self, message: OutgoingMail) -> None:
        log.info("mail to=%s subject=%s\n%s", message.to, message.subject, message.text or message.html)


class MemoryMailer:
    def __init__(self) -> None:
        self.outbox: list[OutgoingMail] = []

    def send(self, message: OutgoingMail) -> None:
        self.outbox.append(message)


class SesMailer:
    def __init__(self, region: str, sender: str) -> None:
        self._client = boto3.client("ses", region_name=region)
        self._sender = sender

    def send(self, message: OutgoingMail) -> None:
        body = {"Html": {"Data": message.html, "Charset": "UTF-8"}}
        if message.text:
            body["Text"] = {"Data": message.text, "Charset": "UTF-8"}
        try:
            self._client.send_email(
                Source=self._sender,
                Destination={"ToAddresses": [message.to]},
                Message={"Subject": {"Data": message.subject, "Charset": "UTF-8"}, "Body": body},
            )
        except (BotoCoreError, ClientError) as e:
            log.error("SES send failed to=%s subject=%s: %s", message.to, message.subject, e)
            raise MailError(str(e)) from e


def _build(backend: str) -> Mailer:
    if backend == "memory":
        return MemoryMailer()
    if backend == "ses":
        return SesMailer(current_app.config["AWS_SES_REGION_NAME"], current_app.config["MAIL_FROM"])
    return LogMailer()


def get_mailer() -> Mailer:
    ext = current_app.extensions
    if "resepi.mailer" not in ext:
        ext["resepi.mailer"] = _build(str(current_app.config.get("MAIL_BACKEND") or "log"))
    return ext["resepi.mailer"]


def send_mail(to: str, subject: str, html: str, text: str | None = None) -> None:
    get_mailer().send(OutgoingMail(to=to, subject=subject, html=html, text=text))


def site_link(path: str) -> str:
    return current_app.config.get("SITE_URL", "").rstrip("/") + path


# ---- Message templates ----

def send_verification_email(email: str, token: str) -> None:
    link = site_link(f"/auth/verify?token={token}")
    send_mail(
        email,
        "Sahkan Emel Anda",
        f"<h1>Selamat datang ke ResepiCheNom</h1>"
        f"<p>Sila klik pautan di bawah untuk mengesahkan emel anda:</p>"
        f'<p><a href="{escape(link)}">Sahkan Emel</a></p>'
        f"<p>Pautan ini akan tamat dalam masa 24 jam.</p>",
        f"Sahkan emel anda: {link}",
    )


def send_reset_password_email(email: str, token: str) -> None:
    link = site_link(f"/auth/reset-password?token={token}")
    send_mail(
        email,
        "Reset Kata Laluan Anda",
        "<h1>Reset Kata Laluan Anda</h1>"
        "<p>Anda telah meminta tetapan semula kata laluan. Sila klik pautan di bawah untuk menetapkan kata laluan baru:</p>"
        f'<p><a href="{escape(link)}">Set Semula Kata Laluan</a></p>'
        "<p>Jika anda tidak meminta ini, sila abaikan emel ini.</p>",
        f"Set semula kata laluan: {link}",
    )


def send_comment_reply_email(email: str, replier: str, recipe_title: str, recipe_slug: str, content: str) -> None:
    link = site_link(f"/resepi/{recipe_slug}#komen")
    send_mail(
        email,
        f"{replier} membalas komen anda",
        f"<p><strong>{escape(replier)}</strong> membalas komen anda di resepi "
        f"<em>{escape(recipe_title)}</em>:</p>"
        f"<blockquote>{escape(content)}</blockquote>"
        f'<p><a href="{escape(link)}">Lihat perbualan</a></p>',
        f"{replier} membalas komen anda: {content}\n{link}",
    )


def send_newsletter_verification(email: str, token: str) -> None:
    link = site_link(f"/newsletter/verify?token={token}")
    send_mail(
        email,
        "Sahkan langganan newsletter ResepiCheNom",
        "<p>Terima kasih kerana melanggan! Sila sahkan emel anda:</p>"
        f'<p><a href="{escape(link)}">Sahkan Langganan</a></p>',
        f"Sahkan langganan: {link}",
    )


def send_contact_message(name: str, email: str, message: str) -> None:
    text = f"You have received a new contact form submission.\n\nName: {name}\nEmail: {email}\nMessage:\n{message}"
    send_mail(
        current_app.config["CONTACT_EMAIL"],
        "New Contact Form Submission",
        f"<pre>{escape(text)}</pre>",
        text,
    )
