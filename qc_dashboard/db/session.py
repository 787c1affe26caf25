"""
Database Session
Engine and session factory shared by the API, Celery tasks and scripts.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..api.config import get_settings

logger = logging.getLogger(__name__)

_engine = None
_SessionLocal = None


def build_engine(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    """Create an engine; SQLite gets thread-sharing instead of pool sizing."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # Verify connections before using
    )


def get_engine() -> Engine:
    """Get database engine (singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
        logger.info(f"Database engine created: {settings.database_url.split('@')[-1]}")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get database session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
        logger.info("Database session factory created")
    return _SessionLocal


def SessionLocal():
    """Open a new session from the global factory."""
    return get_session_factory()()
