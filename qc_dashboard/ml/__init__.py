"""
Machine learning package: the image defect classifier.
"""

from .config import DEFECT_CLASSES, ClassifierConfig, get_classifier_config, set_classifier_config
from .model_loader import (
    ClassifierRegistry,
    DetectionResult,
    ModelNotAvailableError,
    get_classifier_registry,
    interpret_probabilities,
)
from .network import DefectClassifierNet
from .preprocessing import InvalidImageError, preprocess_image

__all__ = [
    "DEFECT_CLASSES",
    "ClassifierConfig",
    "ClassifierRegistry",
    "DefectClassifierNet",
    "DetectionResult",
    "InvalidImageError",
    "ModelNotAvailableError",
    "get_classifier_config",
    "get_classifier_registry",
    "interpret_probabilities",
    "preprocess_image",
    "set_classifier_config",
]
