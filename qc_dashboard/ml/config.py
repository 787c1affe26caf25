"""
ML Configuration
Configuration for the image defect classifier.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import torch


# Output classes, in the order of the network's final layer
DEFECT_CLASSES: Tuple[str, ...] = ("good", "minor_defect", "major_defect")
GOOD_CLASS = DEFECT_CLASSES[0]


@dataclass
class ClassifierConfig:
    """Network input and decision configuration."""

    # Images are resized to image_size x image_size RGB and scaled to [0, 1]
    image_size: int = 224
    channels: int = 3
    classes: Tuple[str, ...] = DEFECT_CLASSES

    # A non-good class only counts as a defect above this probability
    defect_threshold: float = 0.6

    # Weights file (torch state_dict); no weights means no predictions
    weights_path: Optional[Path] = None
    device: str = field(default_factory=lambda: "cuda" if torch.cuda.is_available() else "cpu")

    def __post_init__(self):
        if not 0.0 < self.defect_threshold < 1.0:
            raise ValueError(f"defect_threshold must be in (0, 1), got {self.defect_threshold}")
        if self.weights_path is not None:
            self.weights_path = Path(self.weights_path)
        if self.device.startswith("cuda") and not torch.cuda.is_available():
            self.device = "cpu"

    @classmethod
    def from_settings(cls, settings) -> "ClassifierConfig":
        """Build from the API settings (DETECTION_* environment variables)."""
        return cls(
            defect_threshold=settings.detection_defect_threshold,
            weights_path=settings.detection_weights_path,
            device=settings.detection_device,
        )

    @property
    def num_classes(self) -> int:
        return len(self.classes)

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        return (self.channels, self.image_size, self.image_size)


# Global config instance
_config: Optional[ClassifierConfig] = None


def get_classifier_config() -> ClassifierConfig:
    """Get global classifier config (singleton)."""
    global _config
    if _config is None:
        _config = ClassifierConfig()
    return _config


def set_classifier_config(config: ClassifierConfig) -> None:
    """Replace the global config (used by the API on startup and by tests)."""
    global _config
    _config = config
