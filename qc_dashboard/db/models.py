"""
SQLAlchemy ORM Models
Database table definitions using SQLAlchemy ORM.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, JSON,
    ForeignKey, Text, Index, Uuid, Enum as SAEnum
)
from sqlalchemy.orm import declarative_base, relationship

from ..models.enums import (
    AlertSeverity,
    AlertType,
    DefectSeverity,
    DefectStatus,
    DefectType,
    DetectionSource,
    InspectionStatus,
    RootCause,
    UserRole,
)
from ..models.quality import defect_age_in_days, defect_rate

Base = declarative_base()


def _enum(enum_cls, name: str) -> SAEnum:
    """String-backed enum column storing the member values."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
        length=32,
    )


class User(Base):
    """
    User model.

    Inspectors, managers and admins of the dashboard.
    """
    __tablename__ = 'users'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, index=True, nullable=False,
                  comment='Login handle')
    email = Column(String(255), unique=True, index=True, nullable=False)

    # Authentication fields
    password_hash = Column(String(255), nullable=False,
                           comment='Bcrypt hashed password')
    role = Column(_enum(UserRole, 'user_role'), nullable=False, default=UserRole.INSPECTOR)
    department = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True,
                       comment='Whether user account is active')
    reset_password_token = Column(String(64), nullable=True, index=True,
                                  comment='sha256 hex digest of the password reset token')
    reset_password_expire = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True,
                        comment='Timestamp of last successful login')

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    inspections = relationship("Inspection", back_populates="inspector")

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name}, role={self.role})>"


class Product(Base):
    """
    Product model.

    Products (or product lines) that batches are inspected against.
    """
    __tablename__ = 'products'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), unique=True, index=True, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Images
    image_url = Column(Text, nullable=True)
    image_key = Column(String(512), nullable=True, comment='Storage key of the product image')

    specs = Column(JSON, nullable=False, default=dict,
                   comment='Free-form specification map: {name: value}')

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    inspections = relationship("Inspection", back_populates="product", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name[:30]})>"


class Inspection(Base):
    """
    Inspection model.

    One batch quality check of a product.
    """
    __tablename__ = 'inspections'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey('products.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    inspector_id = Column(Uuid, ForeignKey('users.id'), nullable=False, index=True)

    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    status = Column(_enum(InspectionStatus, 'inspection_status'), nullable=False,
                    default=InspectionStatus.PENDING, index=True)
    batch_number = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)

    # Totals
    defects_found = Column(Integer, nullable=False, default=0)
    total_inspected = Column(Integer, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="inspections")
    inspector = relationship("User", back_populates="inspections")
    images = relationship("InspectionImage", back_populates="inspection",
                          cascade="all, delete-orphan", order_by="InspectionImage.created_at")
    defects = relationship("Defect", back_populates="inspection",
                           cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_inspections_product_date', 'product_id', 'date'),
    )

    @property
    def defect_rate(self) -> float:
        return defect_rate(self.defects_found or 0, self.total_inspected or 0)

    def __repr__(self):
        return f"<Inspection(id={self.id}, batch={self.batch_number}, status={self.status})>"


class InspectionImage(Base):
    """Image attached to an inspection (uploaded or analyzed)."""
    __tablename__ = 'inspection_images'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    inspection_id = Column(Uuid, ForeignKey('inspections.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    url = Column(Text, nullable=False)
    storage_key = Column(String(512), nullable=True)
    defects_detected = Column(Boolean, nullable=False, default=False)
    ai_confidence = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    inspection = relationship("Inspection", back_populates="images")


class Defect(Base):
    """
    Defect model.

    A flaw found during or after an inspection.
    """
    __tablename__ = 'defects'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    inspection_id = Column(Uuid, ForeignKey('inspections.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey('products.id', ondelete='CASCADE'),
                        nullable=False, index=True)

    type = Column(_enum(DefectType, 'defect_type'), nullable=False, index=True)
    severity = Column(_enum(DefectSeverity, 'defect_severity'), nullable=False, index=True)
    description = Column(Text, nullable=False)
    location = Column(String(255), nullable=True)
    measurements = Column(JSON, nullable=True,
                          comment='{expected, actual, unit}')
    root_cause = Column(_enum(RootCause, 'root_cause'), nullable=False, default=RootCause.UNKNOWN)
    status = Column(_enum(DefectStatus, 'defect_status'), nullable=False,
                    default=DefectStatus.OPEN, index=True)

    image_url = Column(Text, nullable=True)
    image_key = Column(String(512), nullable=True)

    detected_by = Column(_enum(DetectionSource, 'detection_source'), nullable=False,
                         default=DetectionSource.MANUAL, index=True)
    ai_confidence = Column(Float, nullable=False, default=0.0,
                           comment='Classifier confidence (0-100)')

    reported_by_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by_id = Column(Uuid, ForeignKey('users.id'), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationships
    inspection = relationship("Inspection", back_populates="defects", foreign_keys=[inspection_id])
    product = relationship("Product")
    reported_by = relationship("User", foreign_keys=[reported_by_id])
    resolved_by = relationship("User", foreign_keys=[resolved_by_id])

    @property
    def age_in_days(self) -> int:
        return defect_age_in_days(self.created_at) if self.created_at else 0

    def __repr__(self):
        return f"<Defect(id={self.id}, type={self.type}, severity={self.severity})>"


class Alert(Base):
    """
    Alert model.

    Raised by defect-rate thresholds, failed inspections and critical defects.
    """
    __tablename__ = 'alerts'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(_enum(AlertType, 'alert_type'), nullable=False, index=True)
    message = Column(Text, nullable=False)
    severity = Column(_enum(AlertSeverity, 'alert_severity'), nullable=False,
                      default=AlertSeverity.MEDIUM)

    inspection_id = Column(Uuid, ForeignKey('inspections.id', ondelete='SET NULL'), nullable=True)
    product_id = Column(Uuid, ForeignKey('products.id', ondelete='SET NULL'), nullable=True)
    defect_id = Column(Uuid, ForeignKey('defects.id', ondelete='SET NULL'), nullable=True)

    defect_rate = Column(Float, nullable=True)
    threshold = Column(Float, nullable=True)
    read = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    inspection = relationship("Inspection")
    product = relationship("Product")
    defect = relationship("Defect")

    def __repr__(self):
        return f"<Alert(id={self.id}, type={self.type}, severity={self.severity})>"
