"""
API Routers
FastAPI route handlers for different endpoints.
"""

from .ai import router as ai_router
from .alerts import router as alerts_router
from .analytics import router as analytics_router
from .auth import router as auth_router
from .defects import router as defects_router
from .health import router as health_router
from .inspections import router as inspections_router
from .products import router as products_router
from .users import router as users_router

__all__ = [
    "health_router",
    "auth_router",
    "users_router",
    "products_router",
    "inspections_router",
    "defects_router",
    "alerts_router",
    "analytics_router",
    "ai_router",
]
