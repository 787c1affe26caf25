"""
Dependency Injection
FastAPI dependencies for database, authentication and services.
"""

import logging
from typing import Callable, Generator, Optional
from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .config import get_settings
from .security import verify_token
from .services.detection import DefectDetectionService, get_detection_service
from .services.storage import ImageStorage, get_image_storage
from ..db.models import User
from ..db.session import get_session_factory
from ..models.enums import UserRole

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Use as FastAPI dependency:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage() -> ImageStorage:
    """Image storage backend (GCS or local disk, per settings)."""
    return get_image_storage()


def get_detector() -> DefectDetectionService:
    """Defect classifier service."""
    return get_detection_service()


def get_request_id(x_request_id: Optional[str] = Header(None)) -> str:
    """
    Get or generate request ID for tracing.
    """
    if x_request_id:
        return x_request_id

    import uuid

    return str(uuid.uuid4())


def _extract_token(token_cookie: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Bearer header wins over the cookie."""
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    if token_cookie and token_cookie != "none":
        return token_cookie
    return None


def get_current_user(
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """
    Get current authenticated user from the JWT in the ``token`` cookie
    or the ``Authorization: Bearer`` header.

    Use as FastAPI dependency to protect routes:
        @app.get("/endpoint")
        def endpoint(current_user: User = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 if not authenticated or token invalid, 403 if disabled
    """
    raw_token = _extract_token(token, authorization)
    if not raw_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Verify and decode token
    payload = verify_token(raw_token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract user ID from token
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
        )

    # Get user from database
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """
    Build a dependency that only lets the given roles through.

    Use as FastAPI dependency:
        @router.delete("/{id}")
        def delete(user: User = Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN))):
            ...
    """
    allowed = set(roles)

    def _check_role(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {current_user.role.value} is not authorized to access this route",
            )
        return current_user

    return _check_role


require_manager = require_roles(UserRole.MANAGER, UserRole.ADMIN)
require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.INSPECTOR, UserRole.MANAGER, UserRole.ADMIN)


def get_cookie_settings() -> dict:
    """
    Cookie settings for the auth token.

    Production (HTTPS) uses secure cookies; development stays on lax/insecure for localhost.
    """
    settings = get_settings()
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "path": "/",
    }
