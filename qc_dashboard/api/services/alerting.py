"""
Alert Service
Applies the alert rules to completed inspections and new defects.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import APISettings, get_settings
from ...db.models import Alert, Defect, Inspection
from ...models.enums import AlertSeverity, AlertType, DefectSeverity, InspectionStatus
from ...models.quality import DefectRateRule

logger = logging.getLogger(__name__)


class AlertService:
    """
    Creates alerts for a session.

    Callers commit their own writes first; alerts are committed
    separately so a failing alert never undoes the triggering change.
    """

    def __init__(self, db: Session, settings: Optional[APISettings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.rate_rule = DefectRateRule(self.settings.alert_defect_rate_threshold)

    def on_inspection_completed(self, inspection: Inspection) -> List[Alert]:
        """Defect-rate and failed-inspection rules."""
        alerts = []

        rate = inspection.defect_rate
        if self.rate_rule.is_breached(rate):
            alerts.append(
                Alert(
                    type=AlertType.HIGH_DEFECT_RATE,
                    message=self.rate_rule.message_for(rate, inspection.batch_number),
                    severity=self.rate_rule.severity_for(rate),
                    inspection_id=inspection.id,
                    product_id=inspection.product_id,
                    defect_rate=round(rate, 2),
                    threshold=self.rate_rule.threshold,
                )
            )

        if inspection.status == InspectionStatus.FAILED and self.settings.alert_on_inspection_failure:
            alerts.append(
                Alert(
                    type=AlertType.INSPECTION_FAILED,
                    message=(
                        f"Inspection failed for batch {inspection.batch_number}: "
                        f"{inspection.defects_found} defect(s) found"
                    ),
                    severity=AlertSeverity.MEDIUM,
                    inspection_id=inspection.id,
                    product_id=inspection.product_id,
                    defect_rate=round(rate, 2),
                )
            )

        return self._save(alerts)

    def on_defect_created(self, defect: Defect, batch_number: str) -> List[Alert]:
        """Critical-defect rule."""
        if defect.severity != DefectSeverity.CRITICAL or not self.settings.alert_on_critical_defect:
            return []

        alert = Alert(
            type=AlertType.CRITICAL_DEFECT,
            message=f"Critical defect detected in batch {batch_number} ({defect.type.value})",
            severity=AlertSeverity.HIGH,
            inspection_id=defect.inspection_id,
            product_id=defect.product_id,
            defect_id=defect.id,
        )
        return self._save([alert])

    def _save(self, alerts: List[Alert]) -> List[Alert]:
        if not alerts:
            return []

        try:
            self.db.add_all(alerts)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create {len(alerts)} alert(s): {e}", exc_info=True)
            return []

        for alert in alerts:
            logger.warning(
                f"Alert [{alert.severity.value}] {alert.type.value}: {alert.message}",
                extra={"alert_id": str(alert.id), "inspection_id": str(alert.inspection_id)},
            )
            self._notify(alert)

        return alerts

    def _notify(self, alert: Alert) -> None:
        if not self.settings.enable_notifications:
            return

        from ...tasks.notifications import send_alert_notification

        try:
            send_alert_notification.delay(str(alert.id))
        except Exception as e:
            # Broker down; the alert itself is already stored
            logger.error(f"Failed to enqueue notification for alert {alert.id}: {e}")
