"""Outgoing email."""

import logging
import smtplib
from email.mime.text import MIMEText

from natours.config import get_settings
from natours.errors import EmailDeliveryError

logger = logging.getLogger("natours")


class EmailService:
    """Sends plain-text email over SMTP, or logs it when no SMTP host is configured."""

    def __init__(self) -> None:
        settings = get_settings()
        self.host = settings.EMAIL_HOST
        self.port = settings.EMAIL_PORT
        self.username = settings.EMAIL_USERNAME
        self.password = settings.EMAIL_PASSWORD
        self.use_tls = settings.EMAIL_USE_TLS
        self.from_email = settings.EMAIL_FROM

    def send(self, to_email: str, subject: str, text: str) -> None:
        """Deliver a message. Raises EmailDeliveryError if the SMTP exchange fails."""
        if not self.host:
            logger.info("EMAIL to %s (%s):\n%s", to_email, subject, text)
            return

        msg = MIMEText(text, "plain")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc)
            raise EmailDeliveryError() from exc

        logger.info("Email sent to %s: %s", to_email, subject)

    def send_password_reset(self, to_email: str, name: str, reset_url: str, expire_minutes: int) -> None:
        text = (
            f"Dear {name},\n\n"
            "You requested a password reset. Submit a PATCH request with your new password and "
            f"passwordConfirm to: {reset_url}\n\n"
            f"The link is valid for {expire_minutes} minutes. "
            "If you didn't forget your password, please ignore this email."
        )
        self.send(to_email, f"Your password reset token (valid for {expire_minutes} min)", text)


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
