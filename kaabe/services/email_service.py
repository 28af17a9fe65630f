"""Email delivery for password reset links."""

from datetime import datetime
from email.message import EmailMessage
from uuid import UUID

import aiosmtplib
import structlog

from kaabe.config import get_settings

logger = structlog.get_logger(__name__)


class EmailService:
    """Sends password reset emails over SMTP."""

    def build_reset_message(
        self, to_email: str, reset_token: UUID, expires_at: datetime
    ) -> EmailMessage:
        """Build the reset email addressed to ``to_email``."""
        settings = get_settings()
        reset_url = settings.reset_url_template.format(token=str(reset_token))

        body = (
            "We received a request to reset your Kaabe password.\n\n"
            f"Use the link below before {expires_at.strftime('%Y-%m-%d %H:%M UTC')}:\n"
            f"{reset_url}\n\n"
            "If you did not ask for this, you can ignore this email."
        )

        message = EmailMessage()
        message["From"] = settings.reset_email_from
        message["To"] = to_email
        message["Subject"] = "Reset your Kaabe password"
        message.set_content(body)
        return message

    async def send_password_reset_email(
        self,
        to_email: str,
        user_id: UUID,
        reset_token: UUID,
        expires_at: datetime,
    ) -> bool:
        """Send a reset email via SMTP.

        Delivery is skipped when reset_email_enabled is off.

        Returns True on success, False when skipped or on failure.
        """
        settings = get_settings()

        if not settings.reset_email_enabled:
            logger.info("password_reset_email_skipped", user_id=str(user_id))
            return False

        try:
            await aiosmtplib.send(
                self.build_reset_message(to_email, reset_token, expires_at),
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username or None,
                password=settings.smtp_password or None,
                use_tls=settings.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(
                "password_reset_email_failed",
                user_id=str(user_id),
                error=str(e),
            )
            return False

        logger.info("password_reset_email_sent", user_id=str(user_id))
        return True
