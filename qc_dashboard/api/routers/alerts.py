"""
Alert routes (managers and admins only).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...db.models import Alert, User
from ...models.enums import AlertSeverity, AlertType
from ..dependencies import get_db, require_manager
from ..errors import ResourceNotFoundError
from ..schemas.alert import AlertResponse
from ..schemas.common import Envelope, ListEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])


def get_alert_or_404(db: Session, alert_id: UUID) -> Alert:
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise ResourceNotFoundError("Alert", alert_id)
    return alert


@router.get("", response_model=ListEnvelope[AlertResponse])
async def list_alerts(
    read: Optional[bool] = Query(None),
    type: Optional[AlertType] = Query(None),
    severity: Optional[AlertSeverity] = Query(None),
    _user: User = Depends(require_manager),
    db: Session = Depends(get_db),
):
    query = db.query(Alert)
    if read is not None:
        query = query.filter(Alert.read == read)
    if type:
        query = query.filter(Alert.type == type)
    if severity:
        query = query.filter(Alert.severity == severity)

    alerts = query.order_by(Alert.created_at.desc()).all()
    return {
        "success": True,
        "count": len(alerts),
        "data": [AlertResponse.model_validate(a) for a in alerts],
    }


# Registered before /{alert_id} so "read-all" is not parsed as an id
@router.put("/read-all", response_model=Envelope[dict])
async def mark_all_read(
    current_user: User = Depends(require_manager),
    db: Session = Depends(get_db),
):
    updated = db.query(Alert).filter(Alert.read.is_(False)).update({Alert.read: True}, synchronize_session=False)
    db.commit()

    logger.info(f"{updated} alert(s) marked read by {current_user.name}")
    return {"success": True, "data": {"updated": updated}}


@router.get("/{alert_id}", response_model=Envelope[AlertResponse])
async def get_alert(
    alert_id: UUID,
    _user: User = Depends(require_manager),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": AlertResponse.model_validate(get_alert_or_404(db, alert_id))}


@router.put("/{alert_id}/read", response_model=Envelope[AlertResponse])
async def mark_read(
    alert_id: UUID,
    _user: User = Depends(require_manager),
    db: Session = Depends(get_db),
):
    alert = get_alert_or_404(db, alert_id)
    alert.read = True
    db.commit()
    db.refresh(alert)
    return {"success": True, "data": AlertResponse.model_validate(alert)}


@router.delete("/{alert_id}", response_model=Envelope[dict])
async def delete_alert(
    alert_id: UUID,
    _user: User = Depends(require_manager),
    db: Session = Depends(get_db),
):
    db.delete(get_alert_or_404(db, alert_id))
    db.commit()
    return {"success": True, "data": {}}
