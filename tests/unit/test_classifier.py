"""
Tests for the defect classifier: network shape, preprocessing,
probability interpretation and the registry.
"""

import io

import numpy as np
import pytest
import torch
from PIL import Image

from qc_dashboard.ml import (
    ClassifierConfig,
    DefectClassifierNet,
    InvalidImageError,
    ModelNotAvailableError,
    get_classifier_config,
    get_classifier_registry,
    interpret_probabilities,
    preprocess_image,
    set_classifier_config,
)


def _png(size=(40, 30), color=(10, 200, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def small_config():
    """A 32px classifier config, restored afterwards."""
    previous = get_classifier_config()
    config = ClassifierConfig(image_size=32, device="cpu")
    set_classifier_config(config)
    registry = get_classifier_registry()
    registry.unload()
    yield config
    registry.unload()
    set_classifier_config(previous)


class TestNetwork:
    def test_output_is_probability_per_class(self):
        net = DefectClassifierNet(image_size=32)
        net.eval()
        with torch.no_grad():
            out = net(torch.rand(2, 3, 32, 32))
        assert out.shape == (2, 3)
        assert torch.allclose(out.sum(dim=1), torch.ones(2), atol=1e-5)

    def test_default_input_size(self):
        net = DefectClassifierNet()
        net.eval()
        with torch.no_grad():
            out = net(torch.rand(1, 3, 224, 224))
        assert out.shape == (1, 3)


class TestPreprocessing:
    def test_shape_and_range(self):
        batch = preprocess_image(_png(), image_size=16)
        assert batch.shape == (1, 3, 16, 16)
        assert batch.dtype == np.float32
        assert batch.min() >= 0.0 and batch.max() <= 1.0

    def test_grayscale_converted_to_rgb(self):
        buffer = io.BytesIO()
        Image.new("L", (20, 20), 128).save(buffer, format="PNG")
        assert preprocess_image(buffer.getvalue(), image_size=8).shape == (1, 3, 8, 8)

    def test_undecodable_bytes(self):
        with pytest.raises(InvalidImageError):
            preprocess_image(b"definitely not an image", image_size=8)


class TestInterpretProbabilities:
    def test_good_is_never_a_defect(self):
        result = interpret_probabilities(np.array([0.9, 0.05, 0.05]), ClassifierConfig(device="cpu"))
        assert not result.has_defect
        assert result.defect_type == "good"
        assert result.confidence == 90
        assert result.scores == {"good": 90, "minor_defect": 5, "major_defect": 5}

    def test_defect_above_threshold(self):
        result = interpret_probabilities(np.array([0.1, 0.2, 0.7]), ClassifierConfig(device="cpu"))
        assert result.has_defect
        assert result.defect_type == "major_defect"
        assert result.confidence == 70

    def test_defect_below_threshold_is_not_flagged(self):
        result = interpret_probabilities(np.array([0.3, 0.5, 0.2]), ClassifierConfig(device="cpu"))
        assert not result.has_defect
        assert result.defect_type == "minor_defect"
        assert result.confidence == 50


class TestConfig:
    def test_threshold_must_be_a_probability(self):
        with pytest.raises(ValueError):
            ClassifierConfig(defect_threshold=1.5)

    def test_input_shape(self):
        assert ClassifierConfig(image_size=64, device="cpu").input_shape == (3, 64, 64)


class TestRegistry:
    def test_missing_weights_raise(self, small_config):
        registry = get_classifier_registry()
        with pytest.raises(ModelNotAvailableError):
            registry.load()
        info = registry.get_model_info()
        assert info["is_loaded"] is False
        assert "DETECTION_WEIGHTS_PATH" in info["error"]

    def test_weights_file_not_found(self, small_config, tmp_path):
        set_classifier_config(ClassifierConfig(image_size=32, device="cpu", weights_path=tmp_path / "none.pt"))
        with pytest.raises(ModelNotAvailableError):
            get_classifier_registry().load()

    def test_load_from_state_dict(self, small_config, tmp_path):
        weights = tmp_path / "classifier.pt"
        torch.save(DefectClassifierNet(image_size=32).state_dict(), weights)
        set_classifier_config(ClassifierConfig(image_size=32, device="cpu", weights_path=weights))

        registry = get_classifier_registry()
        registry.load()
        assert registry.is_loaded()

        result = registry.predict(_png())
        assert result.defect_type in ("good", "minor_defect", "major_defect")
        assert 0 <= result.confidence <= 100
        assert set(result.scores) == {"good", "minor_defect", "major_defect"}

    def test_predict_many(self, small_config):
        registry = get_classifier_registry()
        registry.set_model(DefectClassifierNet(image_size=32))
        results = registry.predict_many([_png(), _png(color=(0, 0, 0))])
        assert len(results) == 2
        assert registry.predict_many([]) == []

    def test_registry_is_singleton(self):
        assert get_classifier_registry() is get_classifier_registry()
