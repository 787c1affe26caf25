"""
Analytics routes.
Quality metrics over a date range and inspection status statistics.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...db.models import User
from ..dependencies import get_current_user, get_db
from ..schemas.common import Envelope
from ..services.analytics import AnalyticsService, parse_date_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("", response_model=Envelope[dict])
async def quality_metrics(
    start_date: Optional[str] = Query(None, description="ISO date; needs end_date"),
    end_date: Optional[str] = Query(None, description="ISO date; needs start_date"),
    product: Optional[UUID] = Query(None),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Overall metrics, defect breakdowns, daily/monthly trends, top-5 product
    defect rates, inspector performance and AI detection metrics.
    """
    start, end = parse_date_range(start_date, end_date)
    return {"success": True, "data": AnalyticsService(db).quality_metrics(start, end, product)}


@router.get("/inspections", response_model=Envelope[dict])
async def inspection_stats(
    period: Optional[str] = Query(None, description="day, week (default), month or year"),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Inspection counts by status since the start of the current period."""
    return {"success": True, "data": AnalyticsService(db).inspection_stats(period)}
