"""
Enumerated status, severity and category values shared by the ORM and the API.
"""

from enum import Enum


class UserRole(str, Enum):
    """Account roles, in increasing order of privilege."""

    INSPECTOR = "inspector"
    MANAGER = "manager"
    ADMIN = "admin"


class InspectionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DefectType(str, Enum):
    VISUAL = "visual"
    FUNCTIONAL = "functional"
    DIMENSIONAL = "dimensional"
    STRUCTURAL = "structural"
    FINISH = "finish"
    MATERIAL = "material"
    ASSEMBLY = "assembly"
    ELECTRICAL = "electrical"
    MECHANICAL = "mechanical"
    OTHER = "other"


class DefectSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class RootCause(str, Enum):
    DESIGN = "design"
    MATERIAL = "material"
    MANUFACTURING = "manufacturing"
    ASSEMBLY = "assembly"
    HANDLING = "handling"
    UNKNOWN = "unknown"


class DefectStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class DetectionSource(str, Enum):
    """Who (or what) reported a defect."""

    MANUAL = "manual"
    AI = "ai"


class AlertType(str, Enum):
    HIGH_DEFECT_RATE = "high-defect-rate"
    INSPECTION_FAILED = "inspection-failed"
    CRITICAL_DEFECT = "critical-defect"
    OTHER = "other"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
