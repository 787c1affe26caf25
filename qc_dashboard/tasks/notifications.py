"""
Notification Tasks
Background e-mail delivery for alerts and password resets, plus reset-token cleanup.
"""

import logging
from typing import Any, Dict
from uuid import UUID

from .celery_app import app

logger = logging.getLogger(__name__)


def alert_email(alert) -> Dict[str, str]:
    """Subject and body for an alert e-mail."""
    subject = f"[QC {alert.severity.value.upper()}] {alert.type.value.replace('-', ' ').title()}"
    lines = [alert.message, ""]
    if alert.inspection is not None:
        lines.append(f"Batch: {alert.inspection.batch_number}")
    if alert.product is not None:
        lines.append(f"Product: {alert.product.name}")
    if alert.defect_rate is not None:
        lines.append(f"Defect rate: {alert.defect_rate:.2f}%")
    if alert.threshold is not None:
        lines.append(f"Threshold: {alert.threshold:g}%")
    lines.append(f"Raised at: {alert.created_at.isoformat()} UTC")
    return {"subject": subject, "body": "\n".join(lines)}


@app.task(
    bind=True, name="tasks.send_alert_notification", max_retries=3, default_retry_delay=60
)
def send_alert_notification(self, alert_id: str) -> Dict[str, Any]:
    """
    E-mail an alert to every active manager and admin.

    Args:
        alert_id: UUID of the alert

    Returns:
        Dictionary with delivery status and recipient count
    """
    from ..api.services.mailer import Mailer
    from ..db.models import Alert, User
    from ..db.session import SessionLocal
    from ..models.enums import UserRole

    db = SessionLocal()
    try:
        alert = db.query(Alert).filter(Alert.id == UUID(alert_id)).first()
        if alert is None:
            logger.warning(f"Alert {alert_id} no longer exists, nothing to send")
            return {"status": "skipped", "recipients": 0}

        recipients = [
            email
            for (email,) in db.query(User.email)
            .filter(User.is_active.is_(True), User.role.in_([UserRole.MANAGER, UserRole.ADMIN]))
            .all()
        ]
        if not recipients:
            logger.info(f"No active managers or admins to notify about alert {alert_id}")
            return {"status": "skipped", "recipients": 0}

        message = alert_email(alert)
        mailer = Mailer()
        sent = sum(1 for email in recipients if mailer.send([email], message["subject"], message["body"]))

        if mailer.configured and sent == 0:
            raise self.retry(exc=RuntimeError(f"No alert e-mails delivered for {alert_id}"))

        logger.info(f"Alert {alert_id} notification sent to {sent}/{len(recipients)} recipients")
        return {"status": "sent" if sent else "not_configured", "recipients": sent}
    finally:
        db.close()


@app.task(
    bind=True, name="tasks.send_password_reset_email", max_retries=3, default_retry_delay=30
)
def send_password_reset_email(self, email: str, reset_url: str) -> Dict[str, Any]:
    """Send the password reset link."""
    from ..api.config import get_settings
    from ..api.services.mailer import Mailer, password_reset_body

    settings = get_settings()
    mailer = Mailer(settings)
    sent = mailer.send(
        [email],
        "Password Reset Request",
        password_reset_body(reset_url, settings.reset_token_expire_minutes),
    )
    if mailer.configured and not sent:
        raise self.retry(exc=RuntimeError(f"Password reset e-mail to {email} failed"))

    return {"status": "sent" if sent else "not_configured", "recipients": int(sent)}


@app.task(name="tasks.clear_expired_reset_tokens")
def clear_expired_reset_tokens() -> Dict[str, Any]:
    """Null out password reset tokens past their expiry."""
    from datetime import datetime

    from ..db.models import User
    from ..db.session import SessionLocal

    db = SessionLocal()
    try:
        cleared = (
            db.query(User)
            .filter(User.reset_password_token.isnot(None), User.reset_password_expire < datetime.utcnow())
            .update(
                {User.reset_password_token: None, User.reset_password_expire: None},
                synchronize_session=False,
            )
        )
        db.commit()
    finally:
        db.close()

    if cleared:
        logger.info(f"Cleared {cleared} expired password reset token(s)")
    return {"cleared": cleared}
