"""
Tests for upload validation and local object storage.
"""

import uuid

import pytest

from estate_feed.services.storage import (
    PROFILE_PICTURES_BUCKET,
    PROPERTY_IMAGES_BUCKET,
    FileValidator,
    ObjectStorage
)
from estate_feed.utils.exceptions import (
    FileSizeExceededError,
    NotFoundError,
    UnsupportedFileTypeError,
    ValidationError
)
from tests.conftest import make_image_bytes


class TestFileValidator:

    @pytest.mark.parametrize("filename,expected", [
        ("house.JPG", ".jpg"),
        ("house.jpeg", ".jpeg"),
        ("photos/house.png", ".png"),
        ("house.webp", ".webp"),
    ])
    def test_supported_extensions(self, filename, expected):
        assert FileValidator.validate_file_extension(filename) == expected

    @pytest.mark.parametrize("filename", ["", "house", "house.gif", "house.exe"])
    def test_rejected_extensions(self, filename):
        with pytest.raises(ValidationError):
            FileValidator.validate_file_extension(filename)

    def test_unsupported_mime_type(self):
        with pytest.raises(UnsupportedFileTypeError):
            FileValidator.validate_mime_type("image/gif")

    def test_empty_and_oversized_files(self):
        with pytest.raises(ValidationError):
            FileValidator.validate_file_size(0, 100)
        with pytest.raises(FileSizeExceededError):
            FileValidator.validate_file_size(101, 100)

    def test_content_must_match_declared_type(self):
        with pytest.raises(ValidationError):
            FileValidator.validate_image_content(make_image_bytes("PNG"), "image/jpeg")

    def test_non_image_content(self):
        with pytest.raises(ValidationError):
            FileValidator.validate_image_content(b"definitely not an image", "image/png")

    def test_extension_must_match_mime_type(self):
        with pytest.raises(ValidationError):
            FileValidator.validate_upload("house.png", make_image_bytes("JPEG"), "image/jpeg", 10_000)


class TestObjectStorage:

    async def test_upload_writes_file_and_returns_public_url(self, storage):
        owner = uuid.uuid4()
        data = make_image_bytes("PNG")
        path = ObjectStorage.generate_path(owner, ".png")

        stored = await storage.upload(PROPERTY_IMAGES_BUCKET, path, data, "image/png")

        assert path.startswith(f"{owner}/")
        assert stored.public_url == f"http://test/media/{PROPERTY_IMAGES_BUCKET}/{path}"
        assert stored.size == len(data)
        assert (storage.root / PROPERTY_IMAGES_BUCKET / path).read_bytes() == data

    async def test_jpeg_profile_picture(self, storage):
        path = ObjectStorage.generate_path(uuid.uuid4(), ".jpg")
        stored = await storage.upload(PROFILE_PICTURES_BUCKET, path, make_image_bytes("JPEG"), "image/jpeg")
        assert stored.content_type == "image/jpeg"

    async def test_unknown_bucket(self, storage):
        with pytest.raises(NotFoundError):
            await storage.upload("documents", "a.png", make_image_bytes("PNG"), "image/png")

    async def test_path_traversal_is_rejected(self, storage):
        with pytest.raises(ValidationError):
            await storage.upload(PROPERTY_IMAGES_BUCKET, "../escape.png", make_image_bytes("PNG"), "image/png")

    async def test_existing_object_is_not_overwritten(self, storage):
        data = make_image_bytes("PNG")
        await storage.upload(PROPERTY_IMAGES_BUCKET, "same.png", data, "image/png")
        with pytest.raises(ValidationError):
            await storage.upload(PROPERTY_IMAGES_BUCKET, "same.png", data, "image/png")

    async def test_size_limit(self, tmp_path):
        small = ObjectStorage(root=str(tmp_path), base_url="", max_size=10)
        with pytest.raises(FileSizeExceededError):
            await small.upload(PROPERTY_IMAGES_BUCKET, "big.png", make_image_bytes("PNG"), "image/png")

    async def test_remove(self, storage):
        await storage.upload(PROPERTY_IMAGES_BUCKET, "gone.png", make_image_bytes("PNG"), "image/png")
        assert await storage.remove(PROPERTY_IMAGES_BUCKET, "gone.png") is True
        assert await storage.remove(PROPERTY_IMAGES_BUCKET, "gone.png") is False
