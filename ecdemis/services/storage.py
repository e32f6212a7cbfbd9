# ecdemis/services/storage.py - learner photos, ownership documents and receipts
import logging
from typing import Protocol

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError

from ecdemis.core.config import settings
from ecdemis.core.errors import ValidationError, StorageError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    'image/jpeg', 'image/jpg', 'image/png', 'image/gif',
    'image/webp', 'image/bmp', 'image/tiff',
    'application/pdf',
}
IMAGE_CONTENT_TYPES = {t for t in ALLOWED_CONTENT_TYPES if t.startswith("image/")}


class BlobStorage(Protocol):
    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Store `content` under `path` and return the storage path"""
        ...

    def get_public_url(self, path: str) -> str:
        ...


def validate_upload(content: bytes, content_type: str, allowed=ALLOWED_CONTENT_TYPES, max_bytes: int | None = None):
    """Validate file type and size"""
    if content_type not in allowed:
        raise ValidationError(
            f"Unsupported file type: {content_type}. Supported types: {', '.join(sorted(allowed))}",
            fields=["file"],
        )
    max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES
    if not content:
        raise ValidationError("File is empty", fields=["file"])
    if len(content) > max_bytes:
        raise ValidationError(
            f"File too large: {len(content)} bytes. Maximum allowed: {max_bytes} bytes",
            fields=["file"],
        )


def storage_path(folder: str, institution_id: int, filename: str) -> str:
    return f"{folder.strip('/')}/{institution_id}/{filename}"


class CloudinaryStorage:
    """BlobStorage backed by Cloudinary"""

    def __init__(self, cloud_name: str | None = None, api_key: str | None = None, api_secret: str | None = None):
        cloudinary.config(
            cloud_name=cloud_name or settings.CLOUDINARY_CLOUD_NAME,
            api_key=api_key or settings.CLOUDINARY_API_KEY,
            api_secret=api_secret or settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        validate_upload(content, content_type)
        # Cloudinary keeps the extension out of the public id
        public_id = path.rsplit(".", 1)[0] if "." in path.rsplit("/", 1)[-1] else path
        try:
            result = cloudinary.uploader.upload(
                content,
                public_id=public_id,
                resource_type="auto",
                overwrite=False,
            )
        except CloudinaryError as e:
            logger.error(f"Cloudinary upload of {path} failed: {e}")
            raise StorageError(f"Failed to upload file: {e}") from e

        stored = result.get("public_id") or public_id
        logger.info(f"Stored {len(content)} bytes at {stored}")
        return stored

    def get_public_url(self, path: str) -> str:
        url, _options = cloudinary.utils.cloudinary_url(path, secure=True)
        return url


_storage: BlobStorage | None = None


def get_storage() -> BlobStorage:
    """FastAPI dependency; tests override it with an in-memory store"""
    global _storage
    if _storage is None:
        _storage = CloudinaryStorage()
    return _storage
