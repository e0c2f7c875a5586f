"""
Tests for email delivery of one-time codes.
"""

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from src.domain.entities.user import OtpPurpose
from src.infrastructure.config import SmtpConfig
from src.infrastructure.notifications import LoggingNotificationSink, SmtpNotificationSink


@pytest.fixture
def smtp_config():
    return SmtpConfig(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="mailer-password",
        from_email="no-reply@example.com",
        from_name="Account Security",
        use_tls=True,
    )


@pytest.fixture
def smtp_server():
    with patch("src.infrastructure.notifications.email_sink.smtplib.SMTP") as smtp_class:
        server = MagicMock()
        smtp_class.return_value.__enter__.return_value = server
        yield smtp_class, server


class TestSmtpNotificationSink:
    """Test SMTP delivery."""

    @pytest.mark.asyncio
    async def test_sends_multipart_message(self, smtp_config, smtp_server):
        smtp_class, server = smtp_server
        sink = SmtpNotificationSink(smtp_config)

        sent = await sink.send_otp("ann@x.com", OtpPurpose.REGISTRATION, "482910")

        assert sent is True
        smtp_class.assert_called_once_with("smtp.example.com", 587, timeout=10)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "mailer-password")

        message = server.send_message.call_args.args[0]
        assert message["To"] == "ann@x.com"
        assert message["From"] == "Account Security <no-reply@example.com>"
        assert message["Subject"] == "Verify your email address"
        parts = message.get_payload()
        assert [part.get_content_type() for part in parts] == ["text/plain", "text/html"]
        assert all("482910" in part.get_payload(decode=True).decode() for part in parts)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "purpose,subject",
        [
            (OtpPurpose.LOGIN, "Your sign-in code"),
            (OtpPurpose.PASSWORD_RESET, "Reset your password"),
        ],
    )
    async def test_subject_follows_purpose(self, smtp_config, smtp_server, purpose, subject):
        _, server = smtp_server

        await SmtpNotificationSink(smtp_config).send_otp("ann@x.com", purpose, "123456")

        assert server.send_message.call_args.args[0]["Subject"] == subject

    @pytest.mark.asyncio
    async def test_plain_connection_without_credentials(self, smtp_config, smtp_server):
        _, server = smtp_server
        smtp_config.use_tls = False
        smtp_config.username = ""

        sent = await SmtpNotificationSink(smtp_config).send_otp(
            "ann@x.com", OtpPurpose.LOGIN, "123456"
        )

        assert sent is True
        server.starttls.assert_not_called()
        server.login.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self, smtp_config, smtp_server, caplog):
        _, server = smtp_server
        server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})

        with caplog.at_level(logging.ERROR):
            sent = await SmtpNotificationSink(smtp_config).send_otp(
                "ann@x.com", OtpPurpose.LOGIN, "123456"
            )

        assert sent is False
        assert "Failed to send email to ann@x.com" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_failure_returns_false(self, smtp_config, smtp_server):
        smtp_class, _ = smtp_server
        smtp_class.side_effect = ConnectionRefusedError("refused")

        sent = await SmtpNotificationSink(smtp_config).send_otp(
            "ann@x.com", OtpPurpose.LOGIN, "123456"
        )

        assert sent is False

    def test_disabled_without_host(self, smtp_config):
        assert smtp_config.enabled
        smtp_config.host = ""
        assert not smtp_config.enabled


class TestLoggingNotificationSink:
    """Test the development sink."""

    @pytest.mark.asyncio
    async def test_logs_without_code(self, caplog):
        with caplog.at_level(logging.INFO):
            sent = await LoggingNotificationSink().send_otp(
                "ann@x.com", OtpPurpose.LOGIN, "654321"
            )

        assert sent is True
        assert "ann@x.com" in caplog.text
        assert "654321" not in caplog.text
