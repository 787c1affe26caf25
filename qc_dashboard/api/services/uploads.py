"""
Upload validation.
Images must be jpeg/jpg/png/gif (by extension and mime type) and at most MAX_UPLOAD_BYTES.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from fastapi import UploadFile

from ..config import get_settings
from ..errors import InvalidRequestError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}


@dataclass
class ImageUpload:
    """A validated upload, read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate_image_meta(filename: Optional[str], content_type: Optional[str]) -> None:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS or (content_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise InvalidRequestError(
            "Only image files (jpeg, jpg, png, gif) are allowed",
            details={"filename": filename, "content_type": content_type},
        )


async def read_image_upload(file: UploadFile) -> ImageUpload:
    """
    Validate and read one uploaded image.

    Raises:
        InvalidRequestError: wrong type, empty file, or over the size limit
    """
    validate_image_meta(file.filename, file.content_type)

    max_bytes = get_settings().max_upload_bytes
    # Read one byte past the limit so oversized files are detected without loading them whole
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise InvalidRequestError(
            f"File too large (max {max_bytes // 1_000_000}MB)",
            details={"filename": file.filename, "max_bytes": max_bytes},
        )
    if not data:
        raise InvalidRequestError("Uploaded file is empty", details={"filename": file.filename})

    return ImageUpload(filename=file.filename, content_type=file.content_type, data=data)


async def read_image_uploads(files: List[UploadFile], max_files: int) -> List[ImageUpload]:
    """Validate a multi-file upload (1..max_files images)."""
    files = [f for f in files or [] if f is not None and f.filename]
    if not files:
        raise InvalidRequestError("Please upload at least one image")
    if len(files) > max_files:
        raise InvalidRequestError(f"At most {max_files} images can be uploaded at once")
    return [await read_image_upload(f) for f in files]
