"""
Health Check Endpoints
Endpoints for health checks and status monitoring.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import APISettings, get_settings
from ..dependencies import get_db
from ..middleware.timing import get_latency_tracker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(settings: APISettings = Depends(get_settings)) -> Dict[str, str]:
    """
    Basic health check.

    Returns:
        Simple health status
    """
    return {
        "status": "healthy",
        "version": settings.version,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> Dict[str, str]:
    """Liveness probe: the process is up and serving."""
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness probe.

    The database must answer before traffic is accepted; 503 otherwise.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database unavailable"},
        )

    return {"status": "ready", "timestamp": datetime.utcnow().isoformat()}


@router.get("/metrics", status_code=status.HTTP_200_OK)
async def get_metrics(settings: APISettings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Request latency percentiles, overall and per resource.
    """
    tracker = get_latency_tracker()
    stats = tracker.get_stats()

    return {
        "requests": {
            "total": stats["count"],
            "slow": tracker.slow_requests,
        },
        "latency": {
            "p50_ms": round(stats["p50"], 2),
            "p95_ms": round(stats["p95"], 2),
            "p99_ms": round(stats["p99"], 2),
            "mean_ms": round(stats["mean"], 2),
            "min_ms": round(stats["min"], 2),
            "max_ms": round(stats["max"], 2),
            "target_p95_ms": settings.target_p95_latency_ms,
            "meets_target": stats["p95"] <= settings.target_p95_latency_ms,
        },
        "routes": {
            group: {"count": s["count"], "p95_ms": round(s["p95"], 2)}
            for group, s in tracker.get_group_stats().items()
        },
        "timestamp": datetime.utcnow().isoformat(),
    }
