"""
Analytics Service
Quality metrics, inspection statistics and defect/AI breakdowns.

Categorical counts are SQL GROUP BYs; calendar bucketing is done in Python
so the same code runs on PostgreSQL and SQLite.
"""

import logging
from collections import OrderedDict, defaultdict
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import InvalidRequestError
from ...db.models import Defect, Inspection, Product, User
from ...models.enums import DefectSeverity, DetectionSource, InspectionStatus
from ...models.quality import defect_rate

logger = logging.getLogger(__name__)

PERIODS = ("day", "week", "month", "year")
AI_STATS_WINDOW_DAYS = 30


def parse_date_param(value: str, name: str, end_of_day: bool = False) -> datetime:
    """
    Parse an ISO date or datetime query parameter.

    A bare date used as an upper bound covers the whole day.
    """
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidRequestError("Invalid date format", details={name: value})

    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta(0))
    if end_of_day and len(value.strip()) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def parse_date_range(
    start_date: Optional[str], end_date: Optional[str]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Both bounds are required for a range; one alone is ignored."""
    if not (start_date and end_date):
        return None, None
    return (
        parse_date_param(start_date, "start_date"),
        parse_date_param(end_date, "end_date", end_of_day=True),
    )


def period_start(period: str, now: datetime) -> datetime:
    """Start of the current day/week/month/year; weeks start on Sunday."""
    today = datetime.combine(now.date(), time.min)
    if period == "day":
        return today
    if period == "month":
        return today.replace(day=1)
    if period == "year":
        return today.replace(month=1, day=1)
    # week
    return today - timedelta(days=(now.weekday() + 1) % 7)


def _rate(defects: int, inspected: int) -> float:
    return round(defect_rate(defects, inspected), 2)


def _day(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _month(value: datetime) -> str:
    return value.strftime("%Y-%m")


class AnalyticsService:
    """Read-only reporting queries over inspections and defects."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @staticmethod
    def _inspection_filters(start: Optional[datetime], end: Optional[datetime], product_id: Optional[UUID]):
        filters = []
        if start is not None and end is not None:
            filters.extend([Inspection.date >= start, Inspection.date <= end])
        if product_id is not None:
            filters.append(Inspection.product_id == product_id)
        return filters

    @staticmethod
    def _defect_filters(start: Optional[datetime], end: Optional[datetime], product_id: Optional[UUID]):
        filters = []
        if start is not None:
            filters.append(Defect.created_at >= start)
        if end is not None:
            filters.append(Defect.created_at <= end)
        if product_id is not None:
            filters.append(Defect.product_id == product_id)
        return filters

    def _count_defects_by(self, column, key: str, filters: list, order_by_count: bool = True) -> List[Dict[str, Any]]:
        count = func.count(Defect.id)
        query = self.db.query(column, count).filter(*filters).group_by(column)
        query = query.order_by(count.desc(), column) if order_by_count else query.order_by(column)
        return [
            {key: value.value if hasattr(value, "value") else value, "count": n}
            for value, n in query.all()
        ]

    # ------------------------------------------------------------------
    # GET /api/analytics
    # ------------------------------------------------------------------

    def quality_metrics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        product_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        inspection_filters = self._inspection_filters(start, end, product_id)
        defect_filters = self._defect_filters(start, end, product_id)

        inspections = (
            self.db.query(
                Inspection.date,
                Inspection.defects_found,
                Inspection.total_inspected,
                Inspection.product_id,
                Inspection.inspector_id,
            )
            .filter(*inspection_filters)
            .order_by(Inspection.date)
            .all()
        )

        total_inspected = sum(row.total_inspected or 0 for row in inspections)
        total_defects = sum(row.defects_found or 0 for row in inspections)

        ai_count, ai_avg = (
            self.db.query(func.count(Defect.id), func.avg(Defect.ai_confidence))
            .filter(Defect.detected_by == DetectionSource.AI, *defect_filters)
            .one()
        )

        return {
            "overall_metrics": {
                "total_inspections": len(inspections),
                "total_items_inspected": total_inspected,
                "total_defects_found": total_defects,
                "overall_defect_rate": _rate(total_defects, total_inspected),
            },
            "defects_by_type": self._count_defects_by(Defect.type, "type", defect_filters),
            "defects_by_severity": self._count_defects_by(Defect.severity, "severity", defect_filters),
            "defect_trend": self._inspection_trend(inspections, _day, "date"),
            "product_defect_rates": self._product_defect_rates(inspection_filters),
            "inspector_performance": self._inspector_performance(inspection_filters),
            "monthly_trend": self._inspection_trend(inspections, _month, "period"),
            "ai_metrics": {
                "total_ai_detections": ai_count or 0,
                "avg_ai_confidence": round(float(ai_avg or 0.0), 2),
            },
        }

    @staticmethod
    def _inspection_trend(inspections, bucket, key: str) -> List[Dict[str, Any]]:
        buckets: Dict[str, Dict[str, int]] = OrderedDict()
        for row in inspections:
            totals = buckets.setdefault(
                bucket(row.date), {"inspection_count": 0, "defect_count": 0, "total_inspected": 0}
            )
            totals["inspection_count"] += 1
            totals["defect_count"] += row.defects_found or 0
            totals["total_inspected"] += row.total_inspected or 0

        return [
            {
                key: label,
                **totals,
                "defect_rate": _rate(totals["defect_count"], totals["total_inspected"]),
            }
            for label, totals in sorted(buckets.items())
        ]

    def _product_defect_rates(self, filters: list, limit: int = 5) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(
                Product.id,
                Product.name,
                func.sum(Inspection.total_inspected).label("total_inspected"),
                func.sum(Inspection.defects_found).label("total_defects"),
            )
            .join(Inspection, Inspection.product_id == Product.id)
            .filter(*filters)
            .group_by(Product.id, Product.name)
            .all()
        )

        rates = [
            {
                "product_id": str(row.id),
                "product_name": row.name,
                "total_inspected": int(row.total_inspected or 0),
                "total_defects": int(row.total_defects or 0),
                "defect_rate": _rate(int(row.total_defects or 0), int(row.total_inspected or 0)),
            }
            for row in rows
        ]
        rates.sort(key=lambda r: r["defect_rate"], reverse=True)
        return rates[:limit]

    def _inspector_performance(self, filters: list) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(
                User.id,
                User.name,
                User.department,
                func.count(Inspection.id).label("inspection_count"),
                func.sum(Inspection.total_inspected).label("total_inspected"),
                func.sum(Inspection.defects_found).label("total_defects"),
            )
            .join(Inspection, Inspection.inspector_id == User.id)
            .filter(*filters)
            .group_by(User.id, User.name, User.department)
            .all()
        )

        performance = []
        for row in rows:
            inspected = int(row.total_inspected or 0)
            defects = int(row.total_defects or 0)
            performance.append(
                {
                    "inspector_id": str(row.id),
                    "inspector_name": row.name,
                    "inspector_department": row.department,
                    "inspection_count": row.inspection_count,
                    "total_inspected": inspected,
                    "total_defects": defects,
                    "defect_rate": _rate(defects, inspected),
                    "average_inspection_size": round(inspected / row.inspection_count, 2)
                    if row.inspection_count
                    else 0.0,
                }
            )
        performance.sort(key=lambda r: r["inspection_count"], reverse=True)
        return performance

    # ------------------------------------------------------------------
    # GET /api/analytics/inspections
    # ------------------------------------------------------------------

    def inspection_stats(self, period: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        period = period if period in PERIODS else "week"
        now = now or datetime.utcnow()
        since = period_start(period, now)

        status_counts = {status.value: 0 for status in InspectionStatus}
        for status, count in (
            self.db.query(Inspection.status, func.count(Inspection.id))
            .filter(Inspection.date >= since)
            .group_by(Inspection.status)
            .all()
        ):
            status_counts[status.value] = count

        bucket = _month if period == "year" else _day
        breakdown: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for inspection_date, status in (
            self.db.query(Inspection.date, Inspection.status).filter(Inspection.date >= since).all()
        ):
            breakdown[bucket(inspection_date)][status.value] += 1

        daily_breakdown = [
            {
                "date": label,
                "statuses": [{"status": s, "count": c} for s, c in sorted(statuses.items())],
                "total_count": sum(statuses.values()),
            }
            for label, statuses in sorted(breakdown.items())
        ]

        return {
            "status_counts": status_counts,
            "total": sum(status_counts.values()),
            "daily_breakdown": daily_breakdown,
            "period": period,
        }

    # ------------------------------------------------------------------
    # GET /api/defects/stats
    # ------------------------------------------------------------------

    def defect_stats(
        self,
        product_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        filters = self._defect_filters(start, end, product_id)

        trend: Dict[str, Dict[str, int]] = {}
        for created_at, severity in (
            self.db.query(Defect.created_at, Defect.severity).filter(*filters).all()
        ):
            day = trend.setdefault(_day(created_at), {"count": 0, **{s.value: 0 for s in DefectSeverity}})
            day["count"] += 1
            day[severity.value] += 1

        return {
            "defects_by_type": self._count_defects_by(Defect.type, "type", filters),
            "defects_by_severity": self._count_defects_by(
                Defect.severity, "severity", filters, order_by_count=False
            ),
            "defects_by_root_cause": self._count_defects_by(Defect.root_cause, "root_cause", filters),
            "defects_by_status": self._count_defects_by(Defect.status, "status", filters),
            "defect_trend": [{"date": label, **counts} for label, counts in sorted(trend.items())],
        }

    # ------------------------------------------------------------------
    # GET /api/ai/stats, /api/ai/data
    # ------------------------------------------------------------------

    def ai_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        ai_filter = Defect.detected_by == DetectionSource.AI

        total, avg_conf, min_conf, max_conf = (
            self.db.query(
                func.count(Defect.id),
                func.avg(Defect.ai_confidence),
                func.min(Defect.ai_confidence),
                func.max(Defect.ai_confidence),
            )
            .filter(ai_filter)
            .one()
        )

        since = now - timedelta(days=AI_STATS_WINDOW_DAYS)
        by_day: Dict[str, List[float]] = defaultdict(list)
        for created_at, confidence in (
            self.db.query(Defect.created_at, Defect.ai_confidence)
            .filter(ai_filter, Defect.created_at >= since)
            .all()
        ):
            by_day[_day(created_at)].append(confidence or 0.0)

        return {
            "total_detections": total or 0,
            "confidence_stats": {
                "avg_confidence": round(float(avg_conf or 0.0), 2),
                "min_confidence": float(min_conf or 0.0),
                "max_confidence": float(max_conf or 0.0),
            },
            "defects_by_type": self._count_defects_by(Defect.type, "type", [ai_filter]),
            "detections_by_day": [
                {
                    "date": label,
                    "count": len(values),
                    "avg_confidence": round(sum(values) / len(values), 2),
                }
                for label, values in sorted(by_day.items())
            ],
        }

    def latest_ai_defect(self) -> Dict[str, Any]:
        """Summary of the newest AI-detected defect; empty fields when there is none."""
        defect = (
            self.db.query(Defect)
            .filter(Defect.detected_by == DetectionSource.AI)
            .order_by(Defect.created_at.desc())
            .first()
        )
        if defect is None:
            return {
                "id": None,
                "product_name": None,
                "batch": None,
                "date": None,
                "confidence": None,
                "status": None,
                "type": None,
                "severity": None,
                "inspector": None,
                "note": None,
                "image_url": None,
            }

        inspection = defect.inspection
        return {
            "id": str(defect.id),
            "product_name": defect.product.name if defect.product else None,
            "batch": inspection.batch_number if inspection else None,
            "date": defect.created_at.date().isoformat(),
            "confidence": defect.ai_confidence,
            "status": defect.status.value,
            "type": defect.type.value,
            "severity": defect.severity.value,
            "inspector": defect.reported_by.name if defect.reported_by else None,
            "note": defect.description,
            "image_url": defect.image_url,
        }
