#!/usr/bin/env python3
"""
Database Initialization Script
Creates all tables and, optionally, a first admin account.

Usage:
    python -m qc_dashboard.scripts.init_db
    python -m qc_dashboard.scripts.init_db --admin-name admin --admin-email admin@example.com --admin-password secret123
"""

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from ..api.schemas.auth import normalize_email
from ..api.security import hash_password
from ..db.models import Base, User
from ..db.session import SessionLocal, get_engine
from ..models.enums import UserRole

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_admin(name: str, email: str, password: str) -> bool:
    """
    Create an admin account unless the name or e-mail is already taken.

    Returns:
        True if a new admin was created
    """
    email = normalize_email(email)
    db = SessionLocal()
    try:
        existing = db.query(User).filter((User.name == name) | (User.email == email)).first()
        if existing:
            logger.info(f"User '{existing.name}' already exists, skipping admin creation")
            return False

        db.add(
            User(
                name=name,
                email=email,
                password_hash=hash_password(password),
                role=UserRole.ADMIN,
            )
        )
        db.commit()
        logger.info(f"Created admin user '{name}'")
        return True
    finally:
        db.close()


def main():
    """Create tables and the optional admin account."""
    parser = argparse.ArgumentParser(description="Initialize the quality control database")
    parser.add_argument("--admin-name", type=str, help="Name of the admin account to create")
    parser.add_argument("--admin-email", type=str, help="E-mail of the admin account")
    parser.add_argument("--admin-password", type=str, help="Password of the admin account")
    args = parser.parse_args()

    admin_args = [args.admin_name, args.admin_email, args.admin_password]
    if any(admin_args) and not all(admin_args):
        parser.error("--admin-name, --admin-email and --admin-password must be given together")

    try:
        Base.metadata.create_all(bind=get_engine())
        logger.info("Database tables created")

        if all(admin_args):
            if len(args.admin_password) < 6:
                parser.error("--admin-password must be at least 6 characters")
            create_admin(args.admin_name, args.admin_email, args.admin_password)
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
