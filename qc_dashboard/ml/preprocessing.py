"""
Image preprocessing for the defect classifier.
"""

import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import get_classifier_config


class InvalidImageError(ValueError):
    """Raised when uploaded bytes cannot be decoded as an image."""


def load_image(data: bytes) -> Image.Image:
    """Decode image bytes into an RGB PIL image."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Could not decode image: {e}") from e
    return image.convert("RGB")


def preprocess_image(data: bytes, image_size: int = None) -> np.ndarray:
    """
    Turn image bytes into a network-ready batch.

    Args:
        data: Raw image bytes (jpeg/png/gif)
        image_size: Target side length (defaults to the classifier config)

    Returns:
        float32 array of shape [1, 3, image_size, image_size] scaled to [0, 1]
    """
    size = image_size or get_classifier_config().image_size
    image = load_image(data).resize((size, size), Image.Resampling.BILINEAR)

    pixels = np.asarray(image, dtype=np.float32) / 255.0  # [H, W, C]
    return np.transpose(pixels, (2, 0, 1))[np.newaxis, ...]
