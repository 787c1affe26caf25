"""
Database ORM Models
SQLAlchemy ORM models for database tables.
"""

from .models import Base, User, Product, Inspection, InspectionImage, Defect, Alert

__all__ = [
    "Base",
    "User",
    "Product",
    "Inspection",
    "InspectionImage",
    "Defect",
    "Alert",
]
