# Overview: Outbound email through a configurable backend.

"""
Mail Service

WHY: Password reset and address verification hand the user a one-time link
by email. Routes and services only call send_mail(); which transport runs
is decided once at startup from MAIL_BACKEND.

BACKENDS:
- smtp: delivers through SMTP_HOST (STARTTLS unless SMTP_USE_TLS is off)
- console: logs recipient and subject only, for development without a relay
- memory: appends to an in-process outbox, for tests
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

from flask import current_app

from ..errors import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str


class ConsoleMailSender:
    def send(self, message: MailMessage) -> None:
        logger.info("Email to %s: %s", message.to, message.subject)


class MemoryMailSender:
    def __init__(self):
        self.outbox: list[MailMessage] = []

    def send(self, message: MailMessage) -> None:
        self.outbox.append(message)


class SMTPMailSender:
    def __init__(self, *, host: str, port: int, username: str | None, password: str | None,
                 use_tls: bool, sender: str, timeout: int = 10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def send(self, message: MailMessage) -> None:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(email)


def build_mail_sender(config):
    """Construct the configured sender once at startup."""
    backend = (config.get("MAIL_BACKEND") or "console").lower()
    if backend == "memory":
        return MemoryMailSender()
    if backend == "smtp":
        if not config.get("SMTP_HOST"):
            raise ValueError("MAIL_BACKEND=smtp requires SMTP_HOST")
        return SMTPMailSender(
            host=config["SMTP_HOST"],
            port=config["SMTP_PORT"],
            username=config.get("SMTP_USER"),
            password=config.get("SMTP_PASSWORD"),
            use_tls=config.get("SMTP_USE_TLS", True),
            sender=f'{config["MAIL_FROM_NAME"]} <{config["MAIL_FROM_EMAIL"]}>',
            timeout=config.get("SMTP_TIMEOUT_SECONDS", 10),
        )
    if backend == "console":
        return ConsoleMailSender()
    raise ValueError(f"Unknown MAIL_BACKEND: {backend}")


def get_mail_sender():
    return current_app.extensions["twsystem.mail"]


def send_mail(to: str, subject: str, body: str) -> None:
    """Deliver one message; relay failures surface as MailDeliveryError (502)."""
    try:
        get_mail_sender().send(MailMessage(to=to, subject=subject, body=body))
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Email to %s failed: %s", to, exc)
        raise MailDeliveryError() from exc
