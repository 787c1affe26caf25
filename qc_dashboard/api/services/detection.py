"""
Defect Detection Service
Thin API-facing wrapper around the classifier registry.
"""

import logging
import time
from typing import Optional

from ..config import get_settings
from ..errors import InvalidRequestError, ModelUnavailableError
from ...ml import (
    ClassifierConfig,
    ClassifierRegistry,
    DetectionResult,
    InvalidImageError,
    ModelNotAvailableError,
    get_classifier_registry,
    set_classifier_config,
)

logger = logging.getLogger(__name__)


class DefectDetectionService:
    """
    Classifies product images for defects.

    Errors come back as API errors: 503 while the model is unavailable,
    400 for bytes that are not a decodable image.
    """

    def __init__(self, registry: Optional[ClassifierRegistry] = None):
        self.registry = registry or get_classifier_registry()

    def warm_up(self) -> bool:
        """Load the weights eagerly; False (and a warning) when they are missing."""
        try:
            self.registry.load()
            return True
        except ModelNotAvailableError as e:
            logger.warning(f"Defect classifier unavailable: {e}")
            return False

    def is_available(self) -> bool:
        if self.registry.is_loaded():
            return True
        return self.warm_up()

    def detect(self, data: bytes) -> DetectionResult:
        start_time = time.time()
        try:
            result = self.registry.predict(data)
        except ModelNotAvailableError as e:
            raise ModelUnavailableError(f"AI model not available: {e}") from e
        except InvalidImageError as e:
            raise InvalidRequestError(str(e)) from e

        logger.info(
            f"Classified image: {result.defect_type} ({result.confidence}%) "
            f"defect={result.has_defect} in {(time.time() - start_time) * 1000:.0f}ms"
        )
        return result

    def status(self) -> dict:
        available = self.is_available()
        info = self.registry.get_model_info()
        return {
            "status": "ready" if available else "unavailable",
            "available": available,
            "model": info,
        }


# Global service instance
_detection_service: Optional[DefectDetectionService] = None


def get_detection_service() -> DefectDetectionService:
    """Detection service configured from settings (singleton)."""
    global _detection_service
    if _detection_service is None:
        set_classifier_config(ClassifierConfig.from_settings(get_settings()))
        _detection_service = DefectDetectionService()
    return _detection_service
