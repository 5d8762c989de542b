"""
PenguinWatch Backend - Image Service Unit Tests
=================================================

What:  Tests for photo validation, storage, introspection and removal.
How:   Real Pillow-generated images written into a temporary directory.

What we test:
    ✅ Declared type and size checks run before anything is written
    ✅ Stored name format and detected metadata
    ✅ Undecodable bytes are rejected and cleaned up
    ✅ Removal is idempotent
    ✅ Served names cannot escape the upload directory
"""

import re

import pytest

from penguinwatch.exceptions import ValidationError
from penguinwatch.services.image_service import ImageService

STORED_NAME = re.compile(r"^\d+-[0-9a-f]{8}\.(jpg|png)$")


def stored_files(service: ImageService):
    return sorted(p.name for p in service.upload_dir.iterdir())


class TestContentTypeValidation:

    @pytest.mark.parametrize("content_type,extension", [
        ("image/jpeg", ".jpg"),
        ("image/jpg", ".jpg"),
        ("image/png", ".png"),
        ("IMAGE/PNG", ".png"),
    ])
    def test_accepted_types(self, image_service, content_type, extension):
        assert image_service.validate_content_type(content_type) == extension

    @pytest.mark.parametrize("content_type", ["image/gif", "application/pdf", "", None])
    def test_rejected_types(self, image_service, content_type):
        with pytest.raises(ValidationError) as exc_info:
            image_service.validate_content_type(content_type)
        assert exc_info.value.errors[0]["path"] == ["image"]
        assert "Only JPEG and PNG" in exc_info.value.message


class TestSizeValidation:

    def test_at_limit_is_accepted(self, image_service):
        image_service.validate_size(5 * 1024 * 1024)

    def test_over_limit(self, image_service):
        with pytest.raises(ValidationError) as exc_info:
            image_service.validate_size(5 * 1024 * 1024 + 1)
        assert exc_info.value.message == "Image is too large. Maximum size is 5MB."
        assert exc_info.value.errors[0]["code"] == "too_big"

    def test_empty(self, image_service):
        with pytest.raises(ValidationError):
            image_service.validate_size(0)


class TestProcessUpload:

    @pytest.mark.asyncio
    async def test_png_metadata(self, image_service, png_bytes):
        metadata, path = await image_service.process_upload("colony.png", "image/png", png_bytes)

        assert path.exists()
        assert STORED_NAME.match(path.name)
        assert metadata.image_url == f"/uploads/{path.name}"
        assert metadata.image_original_name == "colony.png"
        assert metadata.image_size == len(png_bytes)
        assert metadata.image_mime_type == "image/png"
        assert (metadata.image_width, metadata.image_height) == (40, 30)
        assert metadata.image_uploaded_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_detected_type_wins_over_declared(self, image_service, jpeg_bytes):
        # Declared PNG, actually JPEG: stored under .png, recorded as JPEG
        metadata, path = await image_service.process_upload("x.png", "image/png", jpeg_bytes)
        assert metadata.image_mime_type == "image/jpeg"
        assert (metadata.image_width, metadata.image_height) == (64, 48)
        assert path.suffix == ".png"

    @pytest.mark.asyncio
    async def test_rejected_type_writes_nothing(self, image_service, png_bytes):
        with pytest.raises(ValidationError):
            await image_service.process_upload("a.gif", "image/gif", png_bytes)
        assert stored_files(image_service) == []

    @pytest.mark.asyncio
    async def test_oversized_writes_nothing(self, tmp_path, png_bytes):
        service = ImageService(str(tmp_path / "small"), max_size=len(png_bytes) - 1)
        with pytest.raises(ValidationError):
            await service.process_upload("a.png", "image/png", png_bytes)
        assert stored_files(service) == []

    @pytest.mark.asyncio
    async def test_undecodable_bytes_removed(self, image_service):
        with pytest.raises(ValidationError) as exc_info:
            await image_service.process_upload("fake.jpg", "image/jpeg", b"not an image at all")
        assert exc_info.value.message == "Invalid image file"
        assert stored_files(image_service) == []

    @pytest.mark.asyncio
    async def test_huge_pixel_count_rejected(self, image_service, oversized_png_bytes):
        assert len(oversized_png_bytes) < image_service.max_size

        with pytest.raises(ValidationError) as exc_info:
            await image_service.process_upload("huge.png", "image/png", oversized_png_bytes)
        assert exc_info.value.message == "Invalid image file"
        assert exc_info.value.errors[0]["code"] == "invalid_image"
        assert stored_files(image_service) == []

    @pytest.mark.asyncio
    async def test_unsupported_real_format_removed(self, image_service, gif_bytes):
        with pytest.raises(ValidationError):
            await image_service.process_upload("a.png", "image/png", gif_bytes)
        assert stored_files(image_service) == []


class TestRemoveAndResolve:

    @pytest.mark.asyncio
    async def test_remove_by_url(self, image_service, png_bytes):
        metadata, path = await image_service.process_upload("a.png", "image/png", png_bytes)
        assert await image_service.remove_by_url(metadata.image_url) is True
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_remove_missing_is_noop(self, image_service):
        assert await image_service.remove_by_url("/uploads/1-deadbeef.png") is True
        assert await image_service.remove_by_url(None) is True

    def test_resolve_inside_upload_dir(self, image_service):
        path = image_service.resolve("1-abcdef12.jpg")
        assert path.parent == image_service.upload_dir

    @pytest.mark.parametrize("name", ["..", "../secret.txt", "nested/../../x.png"])
    def test_resolve_rejects_escape(self, image_service, name):
        with pytest.raises(ValidationError):
            image_service.resolve(name)
