"""Tests for reset-flow email rendering and delivery."""

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from app.services.notifier import (
    ConsoleNotifier,
    NotificationError,
    SMTPNotifier,
    render_password_changed_email,
    render_reset_token_email,
)


class TestTemplates:
    def test_reset_token_email_contains_token(self):
        body = render_reset_token_email("0123456789abcdef0123", ttl_minutes=60)
        assert "0123456789abcdef0123" in body
        assert "60 minutes" in body

    def test_reset_token_is_escaped(self):
        body = render_reset_token_email("<script>", ttl_minutes=60)
        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_password_changed_email(self):
        assert "Your Password Has Been Reset" in render_password_changed_email()


class TestSMTPNotifier:
    @patch("app.services.notifier.smtplib.SMTP_SSL")
    def test_send_over_ssl(self, mock_smtp_ssl):
        conn = MagicMock()
        mock_smtp_ssl.return_value.__enter__.return_value = conn
        notifier = SMTPNotifier("smtp.example.com", 465, username="svc@example.com", password="secret")

        notifier.send("alice@example.com", "Password Reset Request", "<p>hi</p>")

        mock_smtp_ssl.assert_called_once_with(host="smtp.example.com", port=465, timeout=10.0)
        conn.login.assert_called_once_with("svc@example.com", "secret")
        message = conn.send_message.call_args.args[0]
        assert message["To"] == "alice@example.com"
        assert message["From"] == "svc@example.com"
        assert message["Subject"] == "Password Reset Request"

    @patch("app.services.notifier.smtplib.SMTP")
    def test_send_with_starttls(self, mock_smtp):
        conn = mock_smtp.return_value
        conn.__enter__.return_value = conn
        notifier = SMTPNotifier("smtp.example.com", 587, use_ssl=False, sender="no-reply@example.com")

        notifier.send("alice@example.com", "Subject", "<p>hi</p>")

        conn.starttls.assert_called_once()
        conn.login.assert_not_called()
        conn.send_message.assert_called_once()

    @patch("app.services.notifier.smtplib.SMTP")
    def test_starttls_failure_closes_connection(self, mock_smtp):
        conn = mock_smtp.return_value
        conn.starttls.side_effect = smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")
        notifier = SMTPNotifier("smtp.example.com", 587, use_ssl=False)

        with pytest.raises(NotificationError):
            notifier.send("alice@example.com", "Subject", "<p>hi</p>")

        conn.close.assert_called_once()
        conn.send_message.assert_not_called()

    @patch("app.services.notifier.smtplib.SMTP_SSL")
    def test_transport_failure_raises_notification_error(self, mock_smtp_ssl):
        mock_smtp_ssl.side_effect = smtplib.SMTPConnectError(421, "unavailable")
        notifier = SMTPNotifier("smtp.example.com", 465)

        with pytest.raises(NotificationError):
            notifier.send("alice@example.com", "Subject", "<p>hi</p>")


class TestConsoleNotifier:
    def test_logs_message(self, caplog):
        with caplog.at_level(logging.INFO, logger="user_data"):
            ConsoleNotifier().send("alice@example.com", "Password Reset Request", "<p>token</p>")
        assert "alice@example.com" in caplog.text
        assert "<p>token</p>" in caplog.text
