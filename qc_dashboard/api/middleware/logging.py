"""
Request Logging Middleware
Logs every request with its request ID, outcome and duration.
"""

import logging
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Probes hit these constantly; keep them out of INFO logs
QUIET_PATHS = ("/health", "/live", "/ready", "/metrics")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests and responses.

    Logs:
    - Request method, path and client
    - Response status code and duration
    - Request ID (taken from X-Request-ID or generated, echoed back)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id

        path = request.url.path
        log = logger.debug if path.startswith(QUIET_PATHS) else logger.info
        start_time = time.time()

        log(
            f"{request.method} {path} started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "client": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"{request.method} {path} failed",
                exc_info=True,
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": path,
                    "duration_ms": duration_ms,
                    "error": str(e),
                },
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        # Client errors are worth a warning, server errors an error
        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning

        log(
            f"{request.method} {path} -> {response.status_code} ({duration_ms:.1f}ms)",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = request_id
        return response
