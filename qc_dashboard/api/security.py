"""
Security helpers.
Password hashing (bcrypt via passlib), JWT issuing/verification and reset tokens.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import jwt
from passlib.context import CryptContext

from .config import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to embed (``sub`` must hold the user id)
        expires_minutes: Override for the configured lifetime

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes or settings.jwt_expire_minutes)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT.

    Returns:
        Claims dict, or None when the token is invalid or expired
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.PyJWTError as e:
        logger.info(f"Rejected invalid token: {e}")
        return None


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token() -> Tuple[str, str, datetime]:
    """
    Create a password reset token.

    Returns:
        (plain token for the e-mail link, sha256 hex for storage, expiry)
    """
    settings = get_settings()
    token = secrets.token_hex(32)
    expires = datetime.utcnow() + timedelta(minutes=settings.reset_token_expire_minutes)
    return token, hash_reset_token(token), expires
