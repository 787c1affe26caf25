"""
FastAPI Main Application
Entry point for the Quality Control Dashboard API.
"""

import logging
import threading
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .errors import setup_error_handlers
from .middleware import RequestLoggingMiddleware, RequestTimingMiddleware
from .routers import (
    ai_router,
    alerts_router,
    analytics_router,
    auth_router,
    defects_router,
    health_router,
    inspections_router,
    products_router,
    users_router,
)
from .services.detection import get_detection_service
from .services.storage import LOCAL_URL_PREFIX
from ..db.models import Base
from ..db.session import get_engine

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Creates missing tables and warms up the defect classifier on startup.
    """
    logger.info("Starting Quality Control Dashboard API...")

    settings = get_settings()
    Base.metadata.create_all(bind=get_engine())

    # Weights load in the background so health checks pass immediately
    def load_classifier_background():
        if get_detection_service().warm_up():
            logger.info("Defect classifier ready")
        else:
            logger.warning("AI detection endpoints will answer 503 until weights are configured")

    threading.Thread(target=load_classifier_background, daemon=True).start()

    logger.info(f"Quality Control Dashboard API started ({settings.environment})")

    yield

    logger.info("Shutting down Quality Control Dashboard API...")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=settings.description,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS: the dashboard frontend sends the auth cookie
    origins = list(dict.fromkeys([settings.client_url, *settings.cors_origins]))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router)
    for router in (
        auth_router,
        users_router,
        products_router,
        inspections_router,
        defects_router,
        alerts_router,
        analytics_router,
        ai_router,
    ):
        app.include_router(router, prefix="/api")

    # Locally stored images
    if not settings.gcs_bucket:
        Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
        app.mount(LOCAL_URL_PREFIX, StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/")
    async def root():
        """API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": settings.description,
            "message": "Quality Control Dashboard API is running...",
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "docs": "/docs",
                "api": "/api",
            },
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "qc_dashboard.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
