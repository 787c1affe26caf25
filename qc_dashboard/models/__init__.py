"""
Domain Models Package
Enumerations and quality rules shared across the service.
"""

from .enums import (
    AlertSeverity,
    AlertType,
    DefectSeverity,
    DefectStatus,
    DefectType,
    DetectionSource,
    InspectionStatus,
    RootCause,
    UserRole,
)
from .quality import DefectRateRule, SeverityClassifier, defect_age_in_days, defect_rate

__all__ = [
    "AlertSeverity",
    "AlertType",
    "DefectSeverity",
    "DefectStatus",
    "DefectType",
    "DetectionSource",
    "InspectionStatus",
    "RootCause",
    "UserRole",
    "DefectRateRule",
    "SeverityClassifier",
    "defect_age_in_days",
    "defect_rate",
]
