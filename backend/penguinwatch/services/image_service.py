"""
PenguinWatch Backend - Image Attachment Service
=================================================

What:  Validates, stores, introspects and removes observation photos.
How:   Checks declared type and size before anything touches the disk,
       writes the bytes under a generated name, then opens the stored file
       with Pillow to read width/height and the real format.
Who:   Called by ObservationService during create/update/delete, and by the
       /uploads route to resolve stored files.

Upload pipeline (one image per request):
    1. Content-type check   (image/jpeg or image/png, nothing written on failure)
    2. Size check           (non-empty, <= max_image_size, nothing written on failure)
    3. Store                (<upload_dir>/<epoch-ms>-<uuid8>.<ext>)
    4. Introspect           (Pillow; detected format must be JPEG or PNG)
       On failure the stored file is deleted before the error propagates.

Stored names contain no client input, so they cannot traverse directories
or collide with each other.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from PIL import Image, UnidentifiedImageError

from penguinwatch.exceptions import FileStorageError, ValidationError
from penguinwatch.schemas.observation import ImageMetadata

logger = logging.getLogger(__name__)

# Declared content type → stored extension
ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}

# Pillow format names accepted after decoding
ALLOWED_FORMATS = {"JPEG", "PNG"}

UPLOAD_URL_PREFIX = "/uploads/"


class ImageService:
    """
    Manages the lifecycle of uploaded observation photos.

    Directory Structure:
        uploads/
        ├── 1717171717171-a1b2c3d4.jpg
        └── 1717171718000-e5f6a7b8.png

    The public URL of a stored file is /uploads/<name>; url_for() and
    path_for_url() convert between the two.
    """

    def __init__(self, upload_dir: str, max_size: int):
        self.upload_dir = Path(upload_dir).resolve()
        self.max_size = max_size
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info("ImageService initialized with upload_dir=%s", self.upload_dir)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_content_type(self, content_type: Optional[str]) -> str:
        """
        Check the declared MIME type of the upload.

        Returns:
            Extension to store the file under.
        Raises:
            ValidationError if the type is not an accepted image type.
        """
        mime = (content_type or "").split(";")[0].strip().lower()
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message="Invalid file type. Only JPEG and PNG images are allowed.",
                field="image",
                code="invalid_type",
                context={"content_type": mime, "allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return ALLOWED_MIME_TYPES[mime]

    def validate_size(self, size: int) -> None:
        """Reject empty uploads and uploads above the configured ceiling."""
        if size == 0:
            raise ValidationError(
                message="Uploaded image is empty.",
                field="image",
                code="too_small",
            )
        if size > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(
                message=f"Image is too large. Maximum size is {max_mb:.0f}MB.",
                field="image",
                code="too_big",
                context={"max_size": self.max_size, "actual_size": size},
            )

    # ── Paths & URLs ──────────────────────────────────────────────────────

    def _generate_name(self, extension: str) -> str:
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{extension}"

    def url_for(self, name: str) -> str:
        return f"{UPLOAD_URL_PREFIX}{name}"

    def resolve(self, filename: str) -> Path:
        """
        Map a requested filename to a path inside upload_dir.

        Raises:
            ValidationError if the name would escape the upload directory.
        """
        path = (self.upload_dir / filename).resolve()
        if path.parent != self.upload_dir:
            raise ValidationError(message="Invalid file path", field="filename")
        return path

    def path_for_url(self, image_url: str) -> Path:
        """Stored file path for an image_url; only the basename is trusted."""
        return self.upload_dir / Path(image_url).name

    # ── Storage ───────────────────────────────────────────────────────────

    async def store(self, content: bytes, extension: str) -> Tuple[Path, str]:
        """
        Write validated bytes to the upload directory.

        Returns:
            (absolute path, public URL)
        Raises:
            FileStorageError if the write fails.
        """
        name = self._generate_name(extension)
        path = self.upload_dir / name
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store image at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )
        logger.info("Image stored: %s (%d bytes)", name, len(content))
        return path, self.url_for(name)

    def read_dimensions(self, path: Path) -> Tuple[int, int, str]:
        """
        Open a stored file with Pillow.

        Returns:
            (width, height, detected MIME type)
        Raises:
            ValidationError if the file is not a decodable JPEG/PNG image, or its
            pixel count exceeds Pillow's decompression-bomb limit.
        """
        try:
            with Image.open(path) as img:
                img.verify()
                image_format = img.format
                width, height = img.size
        except (Image.DecompressionBombError, UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            logger.warning("Image introspection failed for %s: %s", path.name, str(e))
            raise ValidationError(message="Invalid image file", field="image", code="invalid_image")

        if image_format not in ALLOWED_FORMATS:
            raise ValidationError(
                message="Invalid image file",
                field="image",
                code="invalid_image",
                context={"format": image_format},
            )
        return width, height, Image.MIME[image_format]

    async def process_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes,
    ) -> Tuple[ImageMetadata, Path]:
        """
        Full upload pipeline: validate → store → introspect.

        Returns:
            (metadata bundle, stored path). The caller removes the stored path
            if anything after this step fails.
        Raises:
            ValidationError for rejected uploads (nothing left on disk).
            FileStorageError when the write itself fails.
        """
        extension = self.validate_content_type(content_type)
        self.validate_size(len(content))

        path, url = await self.store(content, extension)
        try:
            width, height, mime = self.read_dimensions(path)
        except Exception:
            await self.remove(path)
            raise

        metadata = ImageMetadata(
            image_url=url,
            image_original_name=filename or path.name,
            image_size=len(content),
            image_mime_type=mime,
            image_width=width,
            image_height=height,
            image_uploaded_at=datetime.now(timezone.utc),
        )
        return metadata, path

    # ── Cleanup ───────────────────────────────────────────────────────────

    async def remove(self, path: Path) -> bool:
        """
        Delete a stored file.

        Missing files are a no-op. OS errors are logged and reported as False;
        callers never fail a request because a file could not be removed.
        """
        try:
            if path.exists():
                path.unlink()
                logger.info("Removed image: %s", path.name)
            else:
                logger.debug("Image already gone: %s", path.name)
            return True
        except OSError as e:
            logger.warning("Failed to remove image %s: %s", path, str(e))
            return False

    async def remove_by_url(self, image_url: Optional[str]) -> bool:
        if not image_url:
            return True
        return await self.remove(self.path_for_url(image_url))
