"""
Mail Service
Plain SMTP delivery for password resets and alert notifications.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional

from ..config import APISettings, get_settings

logger = logging.getLogger(__name__)


class Mailer:
    """Sends text e-mails over SMTP (STARTTLS when credentials are set)."""

    def __init__(self, settings: Optional[APISettings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.smtp_configured

    def send(self, to: Iterable[str], subject: str, body: str) -> bool:
        """
        Send one message to the given recipients.

        Returns:
            True if handed to the SMTP server, False when SMTP is not
            configured, there are no recipients, or delivery failed
        """
        recipients = [address for address in to if address]
        if not recipients:
            logger.info(f"No recipients for '{subject}', skipping")
            return False

        if not self.configured:
            logger.info(f"Email not configured - would send '{subject}' to {', '.join(recipients)}")
            return False

        msg = MIMEMultipart()
        msg["From"] = self.settings.mail_from
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as server:
                if self.settings.smtp_user:
                    server.starttls()
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.sendmail(self.settings.mail_from, recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {', '.join(recipients)}: {e}")
            return False

        logger.info(f"Sent '{subject}' to {', '.join(recipients)}")
        return True


def password_reset_body(reset_url: str, expire_minutes: int) -> str:
    return (
        "You are receiving this email because you (or someone else) requested a password reset "
        "for your Quality Control Dashboard account.\n\n"
        f"Open the following link to choose a new password:\n\n{reset_url}\n\n"
        f"The link expires in {expire_minutes} minutes. "
        "If you did not request this, you can ignore this email."
    )
