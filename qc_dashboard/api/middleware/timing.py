"""
Request Timing Middleware
Tracks request latency overall and per route prefix.
"""

import logging
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Deque, Dict, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import get_settings

logger = logging.getLogger(__name__)


def route_group(path: str) -> str:
    """Collapse a path to its resource prefix, e.g. /api/defects/<id> -> /api/defects."""
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "api":
        return f"/api/{parts[1]}"
    return "/" + parts[0] if parts else "/"


class LatencyTracker:
    """
    Rolling window of request latencies.

    Keeps one window for all requests and one per route group, so
    ``/metrics`` can show which resource is slow.
    """

    def __init__(self, window_size: int = 1000):
        self.window_size = window_size
        self.latencies: Deque[float] = deque(maxlen=window_size)
        self.by_group: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=window_size))
        self.slow_requests = 0
        self.lock = Lock()

    def record(self, latency_ms: float, group: Optional[str] = None, slow: bool = False) -> None:
        with self.lock:
            self.latencies.append(latency_ms)
            if group:
                self.by_group[group].append(latency_ms)
            if slow:
                self.slow_requests += 1

    def get_stats(self, group: Optional[str] = None) -> Dict[str, float]:
        """
        Latency statistics for all requests, or for one route group.

        Returns:
            Dict with count, p50, p95, p99, mean, min, max
        """
        with self.lock:
            values = self.latencies if group is None else self.by_group.get(group, ())
            return self._summarize(sorted(values))

    def get_group_stats(self) -> Dict[str, Dict[str, float]]:
        with self.lock:
            return {
                group: self._summarize(sorted(values))
                for group, values in sorted(self.by_group.items())
            }

    def reset(self) -> None:
        with self.lock:
            self.latencies.clear()
            self.by_group.clear()
            self.slow_requests = 0

    @classmethod
    def _summarize(cls, sorted_latencies: List[float]) -> Dict[str, float]:
        count = len(sorted_latencies)
        if not count:
            return {"count": 0, "p50": 0.0, "p95": 0.0, "p99": 0.0, "mean": 0.0, "min": 0.0, "max": 0.0}

        return {
            "count": count,
            "p50": cls._percentile(sorted_latencies, 50),
            "p95": cls._percentile(sorted_latencies, 95),
            "p99": cls._percentile(sorted_latencies, 99),
            "mean": sum(sorted_latencies) / count,
            "min": sorted_latencies[0],
            "max": sorted_latencies[-1],
        }

    @staticmethod
    def _percentile(sorted_values: List[float], percentile: int) -> float:
        if not sorted_values:
            return 0.0

        index = int((percentile / 100.0) * len(sorted_values))
        index = min(index, len(sorted_values) - 1)
        return sorted_values[index]


# Global latency tracker
_latency_tracker = LatencyTracker()


def get_latency_tracker() -> LatencyTracker:
    """Get global latency tracker."""
    return _latency_tracker


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Records latency for each request, sets X-Response-Time and
    warns about requests slower than ``slow_request_ms``.
    """

    def __init__(self, app, tracker: LatencyTracker = None, slow_request_ms: Optional[int] = None):
        super().__init__(app)
        self.tracker = tracker or get_latency_tracker()
        self.slow_request_ms = slow_request_ms or get_settings().slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        slow = duration_ms > self.slow_request_ms
        self.tracker.record(duration_ms, group=route_group(request.url.path), slow=slow)

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        if slow:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {duration_ms:.0f}ms",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                    "threshold_ms": self.slow_request_ms,
                },
            )

        return response
