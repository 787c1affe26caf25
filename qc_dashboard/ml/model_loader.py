"""
Model Loader
Singleton registry for loading and caching the defect classifier.
Handles lazy loading, device management, and provides the prediction API.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import torch

from .config import GOOD_CLASS, ClassifierConfig, get_classifier_config
from .network import DefectClassifierNet
from .preprocessing import preprocess_image

logger = logging.getLogger(__name__)


class ModelNotAvailableError(Exception):
    """Raised when the classifier has no usable weights."""


@dataclass
class DetectionResult:
    """Outcome of classifying one image."""

    has_defect: bool
    defect_type: str
    confidence: int  # top class probability as a 0-100 percentage
    scores: Dict[str, int] = field(default_factory=dict)  # class -> percent

    def to_dict(self) -> dict:
        return {
            "has_defect": self.has_defect,
            "defect_type": self.defect_type,
            "confidence": self.confidence,
            "scores": self.scores,
        }


def interpret_probabilities(probabilities: np.ndarray, config: ClassifierConfig) -> DetectionResult:
    """
    Turn one row of class probabilities into a DetectionResult.

    The top class wins; it is only a defect when it is not ``good`` and its
    probability clears the configured threshold.
    """
    probabilities = np.asarray(probabilities, dtype=np.float64).reshape(-1)
    top = int(np.argmax(probabilities))
    top_class = config.classes[top]
    top_probability = float(probabilities[top])

    return DetectionResult(
        has_defect=top_class != GOOD_CLASS and top_probability > config.defect_threshold,
        defect_type=top_class,
        confidence=int(round(top_probability * 100)),
        scores={name: int(round(float(p) * 100)) for name, p in zip(config.classes, probabilities)},
    )


class ClassifierRegistry:
    """
    Singleton registry for the defect classifier.

    Provides:
    - Lazy loading of the network weights (once per process)
    - Device management (CPU/GPU)
    - predict() for raw image bytes

    Usage:
        registry = ClassifierRegistry()
        result = registry.predict(image_bytes)
    """

    _instance: Optional["ClassifierRegistry"] = None

    def __new__(cls):
        """Singleton pattern - only one instance per process."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize registry (only runs once due to singleton)."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._model: Optional[DefectClassifierNet] = None
        self._load_error: Optional[str] = None
        self._loaded_at: Optional[float] = None
        self._initialized = True

    @property
    def config(self) -> ClassifierConfig:
        return get_classifier_config()

    def load(self) -> DefectClassifierNet:
        """
        Load the network weights (cached).

        Raises:
            ModelNotAvailableError: If no weights are configured or they fail to load
        """
        if self._model is not None:
            return self._model

        with self._lock:
            if self._model is not None:
                return self._model

            config = self.config
            if config.weights_path is None:
                self._load_error = "No classifier weights configured (DETECTION_WEIGHTS_PATH)"
                raise ModelNotAvailableError(self._load_error)
            if not config.weights_path.exists():
                self._load_error = f"Classifier weights not found: {config.weights_path}"
                raise ModelNotAvailableError(self._load_error)

            logger.info(f"Loading defect classifier from {config.weights_path} (device: {config.device})")
            start_time = time.time()

            model = DefectClassifierNet(num_classes=config.num_classes, image_size=config.image_size)
            try:
                state_dict = torch.load(config.weights_path, map_location=config.device)
                model.load_state_dict(state_dict)
            except (OSError, RuntimeError, KeyError) as e:
                self._load_error = f"Failed to load classifier weights: {e}"
                logger.error(self._load_error)
                raise ModelNotAvailableError(self._load_error) from e

            model.to(config.device)
            model.eval()  # inference mode: dropout off

            self._model = model
            self._load_error = None
            self._loaded_at = time.time()
            logger.info(f"Defect classifier loaded in {time.time() - start_time:.2f}s")

        return self._model

    def set_model(self, model: DefectClassifierNet) -> None:
        """Install an already-built network (training scripts and tests)."""
        with self._lock:
            model.eval()
            self._model = model.to(self.config.device)
            self._load_error = None
            self._loaded_at = time.time()

    def predict_batch(self, batch: np.ndarray) -> np.ndarray:
        """
        Class probabilities for a preprocessed batch.

        Args:
            batch: float32 array [n, 3, H, W] in [0, 1]

        Returns:
            Array [n, num_classes]
        """
        model = self.load()
        tensor = torch.from_numpy(np.ascontiguousarray(batch, dtype=np.float32)).to(self.config.device)
        with torch.no_grad():
            probabilities = model(tensor)
        return probabilities.cpu().numpy()

    def predict(self, data: bytes) -> DetectionResult:
        """Classify raw image bytes."""
        probabilities = self.predict_batch(preprocess_image(data, self.config.image_size))
        return interpret_probabilities(probabilities[0], self.config)

    def predict_many(self, images: List[bytes]) -> List[DetectionResult]:
        if not images:
            return []
        batch = np.concatenate([preprocess_image(data, self.config.image_size) for data in images])
        return [interpret_probabilities(row, self.config) for row in self.predict_batch(batch)]

    def is_loaded(self) -> bool:
        return self._model is not None

    def unload(self) -> None:
        """Drop the cached network; it is reloaded on next use."""
        with self._lock:
            if self._model is not None:
                logger.info("Unloading defect classifier")
            self._model = None
            self._loaded_at = None
            if self.config.device != "cpu":
                torch.cuda.empty_cache()

    def get_model_info(self) -> dict:
        config = self.config
        return {
            "architecture": "cnn-3conv-2dense",
            "classes": list(config.classes),
            "input_shape": list(config.input_shape),
            "defect_threshold": config.defect_threshold,
            "weights_path": str(config.weights_path) if config.weights_path else None,
            "device": config.device,
            "is_loaded": self.is_loaded(),
            "loaded_at": self._loaded_at,
            "error": self._load_error,
        }


def get_classifier_registry() -> ClassifierRegistry:
    return ClassifierRegistry()
