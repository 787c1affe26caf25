"""
Quality metrics and rules.
Plain calculations shared by routers, services and the ORM.
"""

import math
from datetime import datetime
from typing import Optional

from .enums import AlertSeverity, DefectSeverity


def defect_rate(defects_found: int, total_inspected: int) -> float:
    """Percentage of inspected items that were defective (0 when nothing was inspected)."""
    if not total_inspected:
        return 0.0
    return (defects_found / total_inspected) * 100


def defect_age_in_days(created_at: datetime, now: Optional[datetime] = None) -> int:
    """Age of a defect in whole days, rounded up."""
    now = now or datetime.utcnow()
    seconds = abs((now - created_at).total_seconds())
    return math.ceil(seconds / 86400)


class SeverityClassifier:
    """Map classifier output to defect severity."""

    CRITICAL_CONFIDENCE = 80
    MAJOR_CONFIDENCE = 70

    @classmethod
    def from_confidence(cls, confidence: float) -> DefectSeverity:
        """
        Severity for an AI detected defect.

        Args:
            confidence: Classifier confidence as a percentage (0-100)
        """
        if confidence > cls.CRITICAL_CONFIDENCE:
            return DefectSeverity.CRITICAL
        if confidence > cls.MAJOR_CONFIDENCE:
            return DefectSeverity.MAJOR
        return DefectSeverity.MINOR


class DefectRateRule:
    """Threshold check for batch defect rates."""

    # Rates above threshold * ESCALATION_FACTOR are critical
    ESCALATION_FACTOR = 1.5

    def __init__(self, threshold: float):
        self.threshold = threshold

    def is_breached(self, rate: float) -> bool:
        return rate > self.threshold

    def severity_for(self, rate: float) -> AlertSeverity:
        if rate > self.threshold * self.ESCALATION_FACTOR:
            return AlertSeverity.CRITICAL
        return AlertSeverity.HIGH

    def message_for(self, rate: float, batch_number: str) -> str:
        return (
            f"High defect rate of {rate:.2f}% detected for batch {batch_number} "
            f"(threshold: {self.threshold:g}%)"
        )
