"""
AI detection schemas.
"""

from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DetectionOut(BaseModel):
    has_defect: bool
    defect_type: str = Field(..., description="good, minor_defect or major_defect")
    confidence: int = Field(..., ge=0, le=100)
    scores: Dict[str, int] = Field(default_factory=dict, description="Class -> percent")


class DetectResponse(BaseModel):
    image_url: Optional[str] = None
    detection: DetectionOut
    defect_id: Optional[UUID] = Field(None, description="Defect created from this detection")
    model_used: str = "cnn"
    message: Optional[str] = None


class BulkAnalyzeItem(BaseModel):
    filename: str
    image_url: Optional[str] = None
    detection: Optional[DetectionOut] = None
    defect_id: Optional[UUID] = None
    error: Optional[str] = None


class BulkAnalyzeResponse(BaseModel):
    inspection_id: UUID
    processed: int
    defects_found: int
    results: List[BulkAnalyzeItem]
