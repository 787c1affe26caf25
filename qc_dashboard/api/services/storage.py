"""
Image Storage
Upload and delete inspection/defect/product images on Google Cloud Storage
or, when no bucket is configured, on the local disk.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

from ..config import get_settings
from ..errors import StorageError

logger = logging.getLogger(__name__)

# URL prefix the app serves local uploads under
LOCAL_URL_PREFIX = "/uploads"


@dataclass
class StoredImage:
    """Where an uploaded image ended up."""

    url: str
    key: str


def build_object_name(filename: str, folder: str, prefix: str = "") -> str:
    """``{prefix}/{folder}/{uuid}{ext}``; the original name is not kept."""
    ext = os.path.splitext(filename or "")[1].lower()
    parts = [p.strip("/") for p in (prefix, folder) if p and p.strip("/")]
    parts.append(f"{uuid.uuid4()}{ext}")
    return "/".join(parts)


class ImageStorage:
    """Storage backend interface."""

    backend = "base"

    def upload(self, data: bytes, filename: str, content_type: str, folder: str) -> StoredImage:
        raise NotImplementedError

    def delete(self, key: Optional[str]) -> bool:
        raise NotImplementedError


class GCSImageStorage(ImageStorage):
    """Images stored as public objects in a GCS bucket."""

    backend = "gcs"

    def __init__(self, bucket_name: str, prefix: str = "", client: Optional[storage.Client] = None):
        self.bucket_name = bucket_name
        self.prefix = prefix
        self._client = client

    @property
    def client(self) -> storage.Client:
        # Created lazily so the app can start without credentials
        if self._client is None:
            self._client = storage.Client()
        return self._client

    def public_url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{key}"

    def upload(self, data: bytes, filename: str, content_type: str, folder: str) -> StoredImage:
        key = build_object_name(filename, folder, self.prefix)
        try:
            blob = self.client.bucket(self.bucket_name).blob(key)
            blob.upload_from_string(data, content_type=content_type)
        except gcp_exceptions.Forbidden as e:
            logger.error(f"Access denied uploading to gs://{self.bucket_name}/{key}")
            raise StorageError("Image upload failed: access denied") from e
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to upload gs://{self.bucket_name}/{key}: {e}")
            raise StorageError("Image upload failed") from e

        logger.info(f"Uploaded {filename} to gs://{self.bucket_name}/{key} ({len(data) / 1024:.1f} KB)")
        return StoredImage(url=self.public_url(key), key=key)

    def delete(self, key: Optional[str]) -> bool:
        if not key:
            return False
        try:
            self.client.bucket(self.bucket_name).blob(key).delete()
        except gcp_exceptions.NotFound:
            logger.debug(f"Object already gone: gs://{self.bucket_name}/{key}")
            return False
        except gcp_exceptions.GoogleAPIError as e:
            logger.warning(f"Failed to delete gs://{self.bucket_name}/{key}: {e}")
            return False

        logger.info(f"Deleted gs://{self.bucket_name}/{key}")
        return True


class LocalImageStorage(ImageStorage):
    """Images written below ``root`` and served by the app at /uploads."""

    backend = "local"

    def __init__(self, root: str, url_prefix: str = LOCAL_URL_PREFIX):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError("Invalid storage key", details={"key": key})
        return path

    def upload(self, data: bytes, filename: str, content_type: str, folder: str) -> StoredImage:
        key = build_object_name(filename, folder)
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError("Image upload failed") from e

        logger.info(f"Stored {filename} at {path} ({len(data) / 1024:.1f} KB)")
        return StoredImage(url=f"{self.url_prefix}/{key}", key=key)

    def delete(self, key: Optional[str]) -> bool:
        if not key:
            return False
        try:
            path = self._path_for(key)
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"Local image already gone: {key}")
            return False
        except (OSError, StorageError) as e:
            logger.warning(f"Failed to delete local image {key}: {e}")
            return False

        logger.info(f"Deleted local image {key}")
        return True


# Global storage instance
_storage: Optional[ImageStorage] = None


def get_image_storage() -> ImageStorage:
    """Storage backend chosen from settings (singleton)."""
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.gcs_bucket:
            logger.info(f"Using GCS image storage: gs://{settings.gcs_bucket}/{settings.gcs_prefix}")
            _storage = GCSImageStorage(settings.gcs_bucket, settings.gcs_prefix)
        else:
            logger.info(f"Using local image storage: {settings.upload_dir}")
            _storage = LocalImageStorage(settings.upload_dir)
    return _storage


def reset_image_storage() -> None:
    global _storage
    _storage = None
