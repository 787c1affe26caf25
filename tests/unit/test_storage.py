"""
Tests for image storage backends.
"""

from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions

from qc_dashboard.api.errors import StorageError
from qc_dashboard.api.services.storage import (
    GCSImageStorage,
    LocalImageStorage,
    build_object_name,
)


def test_object_name_layout():
    name = build_object_name("Photo.JPG", "defects", "quality-control")
    assert name.startswith("quality-control/defects/")
    assert name.endswith(".jpg")
    assert "Photo" not in name


def test_object_names_are_unique():
    assert build_object_name("a.png", "x") != build_object_name("a.png", "x")


class TestLocalImageStorage:
    def test_upload_and_delete(self, tmp_path):
        storage = LocalImageStorage(str(tmp_path))
        stored = storage.upload(b"png-bytes", "part.png", "image/png", "inspections")

        assert stored.url == f"/uploads/{stored.key}"
        assert (tmp_path / stored.key).read_bytes() == b"png-bytes"

        assert storage.delete(stored.key) is True
        assert not (tmp_path / stored.key).exists()
        assert storage.delete(stored.key) is False

    def test_delete_without_key(self, tmp_path):
        assert LocalImageStorage(str(tmp_path)).delete(None) is False

    def test_rejects_keys_outside_root(self, tmp_path):
        storage = LocalImageStorage(str(tmp_path / "root"))
        assert storage.delete("../../etc/passwd") is False


class TestGCSImageStorage:
    def _storage(self):
        client = MagicMock()
        blob = client.bucket.return_value.blob.return_value
        return GCSImageStorage("qc-bucket", "qc", client=client), client, blob

    def test_upload_returns_public_url(self):
        storage, client, blob = self._storage()
        stored = storage.upload(b"data", "x.png", "image/png", "products")

        client.bucket.assert_called_with("qc-bucket")
        blob.upload_from_string.assert_called_once_with(b"data", content_type="image/png")
        assert stored.key.startswith("qc/products/")
        assert stored.url == f"https://storage.googleapis.com/qc-bucket/{stored.key}"

    def test_upload_failure_raises_storage_error(self):
        storage, _, blob = self._storage()
        blob.upload_from_string.side_effect = gcp_exceptions.Forbidden("denied")
        with pytest.raises(StorageError):
            storage.upload(b"data", "x.png", "image/png", "products")

    def test_delete_missing_object(self):
        storage, _, blob = self._storage()
        blob.delete.side_effect = gcp_exceptions.NotFound("gone")
        assert storage.delete("qc/products/x.png") is False

    def test_delete(self):
        storage, _, blob = self._storage()
        assert storage.delete("qc/products/x.png") is True
        blob.delete.assert_called_once()
