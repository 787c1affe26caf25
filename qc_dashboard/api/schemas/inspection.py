"""
Inspection schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .product import ProductSummary
from ...models.enums import InspectionStatus


class InspectionCreate(BaseModel):
    product: UUID = Field(..., description="Product being inspected")
    batch_number: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = None
    total_inspected: int = Field(..., ge=1, description="Number of items checked")
    date: Optional[datetime] = Field(None, description="Defaults to now")


class InspectionUpdate(BaseModel):
    batch_number: Optional[str] = Field(None, min_length=1, max_length=100)
    notes: Optional[str] = None
    status: Optional[InspectionStatus] = None
    total_inspected: Optional[int] = Field(None, ge=1)
    date: Optional[datetime] = None


class InspectorSummary(BaseModel):
    id: UUID
    name: str
    department: Optional[str] = None

    model_config = {"from_attributes": True}


class InspectionImageResponse(BaseModel):
    id: UUID
    url: str
    defects_detected: bool
    ai_confidence: float
    created_at: datetime

    model_config = {"from_attributes": True}


class InspectionResponse(BaseModel):
    id: UUID
    product: Optional[ProductSummary] = None
    inspector: Optional[InspectorSummary] = None
    date: datetime
    status: InspectionStatus
    batch_number: str
    notes: Optional[str] = None
    defects_found: int
    total_inspected: int
    defect_rate: float = Field(..., description="defects_found / total_inspected * 100")
    images: List[InspectionImageResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}
