"""
Email delivery of one-time codes.

SmtpNotificationSink sends multipart (plain text + HTML) messages over SMTP in
a worker thread. LoggingNotificationSink is the development fallback used when
no SMTP server is configured.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.domain.entities.user import OtpPurpose

from ..config import SmtpConfig

logger = logging.getLogger(__name__)

SUBJECTS = {
    OtpPurpose.REGISTRATION: "Verify your email address",
    OtpPurpose.LOGIN: "Your sign-in code",
    OtpPurpose.PASSWORD_RESET: "Reset your password",
}

INTROS = {
    OtpPurpose.REGISTRATION: "Thanks for signing up. Enter this code to verify your email address:",
    OtpPurpose.LOGIN: "Enter this code to finish signing in:",
    OtpPurpose.PASSWORD_RESET: "Enter this code to reset your password:",
}


class SmtpNotificationSink:
    """Sends one-time codes by email via SMTP."""

    def __init__(self, config: SmtpConfig, expiry_minutes: int = 5) -> None:
        self.config = config
        self.expiry_minutes = expiry_minutes

    async def send_otp(self, email: str, purpose: OtpPurpose, code: str) -> bool:
        """
        Send a one-time code email.

        Args:
            email: Recipient email
            purpose: Flow the code belongs to, selects the wording
            code: Plaintext code

        Returns:
            True if sent successfully, False otherwise
        """
        subject = SUBJECTS[purpose]
        text_body, html_body = self._render(purpose, code)
        return await asyncio.to_thread(self._send_email, email, subject, html_body, text_body)

    def _render(self, purpose: OtpPurpose, code: str) -> tuple[str, str]:
        intro = INTROS[purpose]
        footer = (
            f"This code expires in {self.expiry_minutes} minutes. "
            "If you did not request it, you can ignore this email."
        )

        text_body = f"{intro}\n\n    {code}\n\n{footer}\n"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <p style="color: #475569; line-height: 1.6;">{intro}</p>
                <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px; text-align: center;">
                    {code}
                </p>
                <p style="color: #64748b; font-size: 14px;">{footer}</p>
            </body>
        </html>
        """
        return text_body, html_body

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send an email via SMTP. Runs in a worker thread.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.config.host, self.config.port, timeout=10) as server:
                if self.config.use_tls:
                    server.starttls()
                if self.config.username:
                    server.login(self.config.username, self.config.password)
                server.send_message(msg)

            logger.info(f"Sent '{subject}' email to {to_email}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e!s}")
            return False


class LoggingNotificationSink:
    """Development sink: records that a code went out without revealing it."""

    async def send_otp(self, email: str, purpose: OtpPurpose, code: str) -> bool:
        logger.info(f"SMTP not configured; {purpose.value} code for {email} not emailed")
        return True
