"""
Alert schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from ...models.enums import AlertSeverity, AlertType


class AlertResponse(BaseModel):
    id: UUID
    type: AlertType
    message: str
    severity: AlertSeverity
    inspection_id: Optional[UUID] = None
    product_id: Optional[UUID] = None
    defect_id: Optional[UUID] = None
    defect_rate: Optional[float] = None
    threshold: Optional[float] = None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
