"""
Defect schemas.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .product import ProductSummary
from ...models.enums import DefectSeverity, DefectStatus, DefectType, DetectionSource, RootCause


class Measurements(BaseModel):
    expected: Optional[float] = None
    actual: Optional[float] = None
    unit: Optional[str] = None


def parse_measurements(value: Any) -> Optional[Dict[str, Any]]:
    """
    Parse a measurements object or JSON string.

    Returns None for anything malformed; callers log and carry on.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, dict):
        return None
    try:
        return Measurements.model_validate(value).model_dump()
    except ValueError:
        return None


class DefectCreate(BaseModel):
    """One defect report (JSON body item of /bulk, or the parsed multipart form)."""

    inspection: UUID
    product: UUID
    type: DefectType
    severity: DefectSeverity
    description: str = Field(..., min_length=1)
    location: Optional[str] = Field(None, max_length=255)
    measurements: Optional[Dict[str, Any]] = None
    root_cause: RootCause = RootCause.UNKNOWN
    status: DefectStatus = DefectStatus.OPEN
    detected_by: DetectionSource = DetectionSource.MANUAL
    ai_confidence: float = Field(default=0.0, ge=0, le=100)

    @field_validator("measurements", mode="before")
    @classmethod
    def coerce_measurements(cls, v: Any) -> Optional[Dict[str, Any]]:
        return parse_measurements(v)


class BulkDefectRequest(BaseModel):
    # Items are validated one by one so a bad item does not reject the batch
    defects: List[Any] = Field(default_factory=list)


class ResolveDefectRequest(BaseModel):
    resolution_notes: Optional[str] = None


class UserRef(BaseModel):
    id: UUID
    name: str

    model_config = {"from_attributes": True}


class InspectionRef(BaseModel):
    id: UUID
    batch_number: str
    date: datetime

    model_config = {"from_attributes": True}


class DefectResponse(BaseModel):
    id: UUID
    inspection_id: UUID
    inspection: Optional[InspectionRef] = None
    product_id: UUID
    product: Optional[ProductSummary] = None
    type: DefectType
    severity: DefectSeverity
    description: str
    location: Optional[str] = None
    measurements: Optional[Dict[str, Any]] = None
    root_cause: RootCause
    status: DefectStatus
    image_url: Optional[str] = None
    detected_by: DetectionSource
    ai_confidence: float
    reported_by: Optional[UserRef] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UserRef] = None
    resolution_notes: Optional[str] = None
    created_at: datetime
    age_in_days: int

    model_config = {"from_attributes": True}
