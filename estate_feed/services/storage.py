"""
Object storage for property images and profile pictures.
Files are validated before writing, stored under ``media_root/<bucket>/<path>``
and served from ``media_url_prefix``.
"""

import io
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional
from PIL import Image, UnidentifiedImageError
import aiofiles

from estate_feed.config import settings
from estate_feed.utils.exceptions import (
    ValidationError,
    NotFoundError,
    RemoteError,
    UnsupportedFileTypeError,
    FileSizeExceededError
)
import logging

logger = logging.getLogger(__name__)

PROPERTY_IMAGES_BUCKET = "property-images"
PROFILE_PICTURES_BUCKET = "profile-pictures"


class FileValidator:
    """Utility class for upload validation."""

    # Supported image formats and their MIME types
    SUPPORTED_FORMATS = {
        'image/jpeg': ['.jpg', '.jpeg'],
        'image/png': ['.png'],
        'image/webp': ['.webp']
    }

    # Pillow format names per MIME type
    PIL_FORMATS = {
        'image/jpeg': 'JPEG',
        'image/png': 'PNG',
        'image/webp': 'WEBP'
    }

    @classmethod
    def validate_file_extension(cls, filename: str) -> str:
        """
        Validate file extension.

        Returns:
            Lowercase file extension

        Raises:
            ValidationError: If extension is missing or not supported
        """
        if not filename:
            raise ValidationError("Filename is required")

        extension = PurePosixPath(filename).suffix.lower()
        if not extension:
            raise ValidationError("File must have an extension")

        supported_extensions = [ext for exts in cls.SUPPORTED_FORMATS.values() for ext in exts]
        if extension not in supported_extensions:
            raise ValidationError(
                f"File extension '{extension}' not supported. "
                f"Supported extensions: {', '.join(supported_extensions)}"
            )

        return extension

    @classmethod
    def validate_mime_type(cls, mime_type: str, allowed: Optional[List[str]] = None) -> str:
        allowed = allowed or list(cls.SUPPORTED_FORMATS)
        if not mime_type or mime_type not in allowed or mime_type not in cls.SUPPORTED_FORMATS:
            raise UnsupportedFileTypeError(mime_type or "unknown", allowed)
        return mime_type

    @classmethod
    def validate_file_size(cls, file_size: int, max_size: int) -> int:
        if file_size <= 0:
            raise ValidationError("File is empty")
        if file_size > max_size:
            raise FileSizeExceededError(file_size, max_size)
        return file_size

    @classmethod
    def validate_image_content(cls, data: bytes, mime_type: str) -> None:
        """
        Check that the bytes decode as the declared image format.

        Raises:
            ValidationError: If the content is not an image of that format
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
                detected = img.format
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ValidationError(f"Invalid image file: {e}")

        if detected != cls.PIL_FORMATS[mime_type]:
            raise ValidationError(f"File content doesn't match declared type {mime_type}")

    @classmethod
    def validate_upload(
        cls,
        filename: str,
        data: bytes,
        content_type: str,
        max_size: int,
        allowed_types: Optional[List[str]] = None
    ) -> str:
        """
        Run every upload check. Returns the file extension.
        """
        extension = cls.validate_file_extension(filename)
        mime_type = cls.validate_mime_type(content_type, allowed_types)

        if extension not in cls.SUPPORTED_FORMATS[mime_type]:
            raise ValidationError(f"File extension '{extension}' doesn't match MIME type '{mime_type}'")

        cls.validate_file_size(len(data), max_size)
        cls.validate_image_content(data, mime_type)
        return extension


@dataclass(frozen=True)
class StoredObject:
    bucket: str
    path: str
    public_url: str
    content_type: str
    size: int


class ObjectStorage:
    """
    Local-filesystem object storage with public URLs.
    """

    def __init__(
        self,
        root: Optional[str] = None,
        url_prefix: Optional[str] = None,
        base_url: Optional[str] = None,
        buckets: Optional[List[str]] = None,
        max_size: Optional[int] = None,
        allowed_types: Optional[List[str]] = None
    ):
        self.root = Path(root or settings.media_root)
        self.url_prefix = (url_prefix or settings.media_url_prefix).rstrip("/")
        self.base_url = (settings.public_base_url if base_url is None else base_url).rstrip("/")
        self.buckets = list(buckets or settings.storage_buckets)
        self.max_size = max_size or settings.max_upload_size
        self.allowed_types = list(allowed_types or settings.allowed_image_types)

    def _check_bucket(self, bucket: str) -> None:
        if bucket not in self.buckets:
            raise NotFoundError("Bucket", bucket)

    def _resolve(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValidationError(f"Invalid storage path: {path}")
        return self.root / bucket / Path(*relative.parts)

    @staticmethod
    def generate_path(owner_id: uuid.UUID, extension: str) -> str:
        """Unique object path under the owner's folder."""
        return f"{owner_id}/{uuid.uuid4().hex}{extension}"

    def get_public_url(self, bucket: str, path: str) -> str:
        self._check_bucket(bucket)
        return f"{self.base_url}{self.url_prefix}/{bucket}/{PurePosixPath(path)}"

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str,
        filename: Optional[str] = None
    ) -> StoredObject:
        """
        Validate and store an object.

        Raises:
            NotFoundError: Unknown bucket
            ValidationError: Type, size or content check failed
            RemoteError: Writing the file failed
        """
        self._check_bucket(bucket)
        FileValidator.validate_upload(
            filename or path,
            data,
            content_type,
            self.max_size,
            self.allowed_types
        )
        target = self._resolve(bucket, path)
        if target.exists():
            raise ValidationError(f"Object already exists: {bucket}/{path}")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"Failed to write {bucket}/{path}: {e}")
            raise RemoteError("upload", str(e)) from e

        logger.info(f"Stored {bucket}/{path} ({len(data)} bytes)")
        return StoredObject(
            bucket=bucket,
            path=path,
            public_url=self.get_public_url(bucket, path),
            content_type=content_type,
            size=len(data)
        )

    async def remove(self, bucket: str, path: str) -> bool:
        self._check_bucket(bucket)
        target = self._resolve(bucket, path)
        if not target.exists():
            return False
        try:
            target.unlink()
        except OSError as e:
            raise RemoteError("remove object", str(e)) from e
        return True
