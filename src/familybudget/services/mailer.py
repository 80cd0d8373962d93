"""Outgoing email transports."""

from __future__ import annotations

import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from threading import Lock
from typing import Protocol

from flask import Flask, current_app

from ..config import BaseConfig
from ..logging_config import get_logger

logger = get_logger("services.mailer")


@dataclass(frozen=True, slots=True)
class OutgoingEmail:
    """A rendered email ready for delivery."""

    to: str
    subject: str
    html_body: str
    text_body: str = ""


class Mailer(Protocol):
    """Anything able to deliver an :class:`OutgoingEmail`."""

    def send(self, message: OutgoingEmail) -> None:  # pragma: no cover - interface
        ...


@dataclass
class SMTPMailer:
    """Deliver mail through an SMTP relay."""

    host: str
    port: int
    sender: str
    username: str | None = None
    password: str | None = None
    use_tls: bool = False

    def send(self, message: OutgoingEmail) -> None:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text_body or message.subject)
        email.add_alternative(message.html_body, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(email)
        logger.info("Email sent", extra={"to": message.to, "subject": message.subject})


@dataclass
class OutboxMailer:
    """Keep messages in memory; used in development and tests."""

    outbox: list[OutgoingEmail] = field(default_factory=list)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def send(self, message: OutgoingEmail) -> None:
        with self._lock:
            self.outbox.append(message)
        logger.info("Email captured", extra={"to": message.to, "subject": message.subject})

    def clear(self) -> None:
        with self._lock:
            self.outbox.clear()


def init_mailer(app: Flask) -> Mailer:
    """Create the mailer selected by ``MAIL_BACKEND`` and attach it to ``app``."""

    config: BaseConfig = app.config["FAMILYBUDGET_CONFIG"]
    mailer: Mailer
    if config.MAIL_BACKEND == "smtp":
        mailer = SMTPMailer(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            sender=config.MAIL_FROM,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            use_tls=config.SMTP_USE_TLS,
        )
    else:
        mailer = OutboxMailer()
    app.extensions["familybudget_mailer"] = mailer
    return mailer


def get_mailer(app: Flask | None = None) -> Mailer:
    target = app or current_app
    return target.extensions["familybudget_mailer"]
