"""Outgoing email for the password reset flow."""

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import get_settings

logger = logging.getLogger("user_data")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
TEXT_STYLE = "text-align: center; font-family: Arial, Helvetica, sans-serif; width: 50%; font-weight: bold;"

RESET_TOKEN_SUBJECT = "Password Reset Request"
PASSWORD_CHANGED_SUBJECT = "Password Reset Confirmation"

_templates = Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(["html"]))


class NotificationError(Exception):
    """Raised when an email could not be handed to the mail transport."""


class Notifier(Protocol):
    def send(self, to_address: str, subject: str, html_body: str) -> None: ...


def render_reset_token_email(token: str, ttl_minutes: int) -> str:
    return _templates.get_template("reset_token.html").render(
        token=token, ttl_minutes=ttl_minutes, text_style=TEXT_STYLE
    )


def render_password_changed_email() -> str:
    return _templates.get_template("password_changed.html").render(text_style=TEXT_STYLE)


class SMTPNotifier:
    """Sends mail through an SMTP server, over SSL or STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_ssl: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_ssl = use_ssl
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(host=self.host, port=self.port, timeout=self.timeout)
        conn = smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout)
        try:
            conn.starttls()
        except (smtplib.SMTPException, OSError):
            conn.close()
            raise
        return conn

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            with self._connect() as conn:
                if self.username:
                    conn.login(self.username, self.password)
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send '%s' to %s: %s", subject, to_address, e)
            raise NotificationError(str(e)) from e


class ConsoleNotifier:
    """Writes outgoing mail to the server log instead of sending it."""

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        logger.info("EMAIL to=%s subject=%s\n%s", to_address, subject, html_body)


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Get singleton notifier for the configured mail backend."""
    global _notifier
    if _notifier is None:
        settings = get_settings()
        if settings.MAIL_BACKEND == "smtp":
            _notifier = SMTPNotifier(
                host=settings.MAIL_HOST,
                port=settings.MAIL_PORT,
                username=settings.MAIL_USERNAME,
                password=settings.MAIL_PASSWORD,
                sender=settings.MAIL_FROM,
                use_ssl=settings.MAIL_USE_SSL,
            )
        else:
            _notifier = ConsoleNotifier()
    return _notifier
