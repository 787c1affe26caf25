"""
API Services
Business logic services for API endpoints.
"""

from .alerting import AlertService
from .analytics import AnalyticsService, parse_date_param, parse_date_range
from .defects import record_defect
from .detection import DefectDetectionService, get_detection_service
from .mailer import Mailer
from .storage import (
    GCSImageStorage,
    ImageStorage,
    LocalImageStorage,
    StoredImage,
    get_image_storage,
)
from .uploads import ImageUpload, read_image_upload, read_image_uploads

__all__ = [
    "AlertService",
    "AnalyticsService",
    "parse_date_param",
    "parse_date_range",
    "record_defect",
    "DefectDetectionService",
    "get_detection_service",
    "Mailer",
    "GCSImageStorage",
    "ImageStorage",
    "LocalImageStorage",
    "StoredImage",
    "get_image_storage",
    "ImageUpload",
    "read_image_upload",
    "read_image_uploads",
]
