"""
Recipes API - Upload Staging Service
======================================

What:  Validates multipart image uploads and stages them on local disk until
       the image host has a copy.
How:   Extension, declared content type, size and the content bytes (libmagic)
       are checked at the request boundary; the bytes are then written to UPLOAD_DIR under a UUID
       filename and removed again once the Cloudinary call returns.
Who:   Recipe routes (validate) and RecipeService (stage / cleanup).

Lifecycle of an uploaded image:
    1. Route reads the multipart `image` field → ImageUpload
    2. validate() rejects wrong type / empty / oversized files (400)
    3. RecipeService calls stage() → absolute path of the staged file
    4. Image store uploads that path
    5. cleanup_file() removes the staged file (always, success or failure)
"""

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import magic

from recipes_api.config import settings
from recipes_api.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/svg+xml",
    "image/webp",
    "image/avif",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".svg", ".webp", ".avif"}


@dataclass(frozen=True)
class ImageUpload:
    """An image received in a multipart request, fully read into memory."""
    filename: str
    content_type: Optional[str]
    content: bytes
    content_length: Optional[int] = None

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


class UploadService:
    """
    Validation and temporary storage for recipe images.

    Directory Structure:
        upload/
        ├── 3f1c...e9.jpg     (removed after the Cloudinary upload)
        └── 7a42...0b.webp
    """

    def __init__(self, upload_dir: Optional[str] = None, max_file_size: Optional[int] = None):
        """
        Args:
            upload_dir: Override the staging directory (used in tests).
            max_file_size: Override settings.max_file_size (bytes).
        """
        self.upload_dir = Path(upload_dir or settings.upload_dir).resolve()
        self.max_file_size = max_file_size or settings.max_file_size
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info("UploadService initialized with upload_dir=%s", self.upload_dir)

    def validate_extension(self, filename: str) -> str:
        """
        Check the filename extension against the allowed list.

        Returns: Normalized extension (lowercase with dot).
        Raises:  ValidationError if the extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_content_type(self, content_type: Optional[str]) -> None:
        """
        Check the content type the client declared for the multipart part.

        A missing content type is tolerated (some clients omit it); the
        extension check still applies.
        """
        if content_type is None:
            return
        media_type = content_type.split(";")[0].strip().lower()
        if media_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                message=f"Content type '{media_type}' is not a supported image type.",
                field="image",
                context={"content_type": media_type, "allowed": sorted(ALLOWED_CONTENT_TYPES)},
            )

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject empty files and files over the configured maximum.

        Args:
            content_length: Size the client reported (may be None or inaccurate)
            actual_size: Byte count actually received
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="The uploaded image is empty.", field="image")

        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"Image size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_file_size:
            raise ValidationError(
                message=f"Image size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_detected_type(self, content: bytes) -> str:
        """
        Inspect the file header bytes with libmagic.

        A renamed file (a script saved as dish.png) fails here even when the
        extension and declared content type look like an image.

        Returns: Detected MIME type.
        Raises:  ValidationError if the bytes are not an allowed image type.
        """
        try:
            detected = magic.from_buffer(content, mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify the image type. Please try again.",
                context={"error": str(e)},
            ) from e

        if detected not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                message=f"File content is '{detected}', not a supported image type.",
                field="image",
                context={"detected_type": detected, "allowed": sorted(ALLOWED_CONTENT_TYPES)},
            )
        return detected

    def validate(self, upload: ImageUpload) -> None:
        """Run every check, cheapest first."""
        self.validate_extension(upload.filename)
        self.validate_content_type(upload.content_type)
        self.validate_size(upload.content_length, len(upload.content))
        self.validate_detected_type(upload.content)

    async def stage(self, upload: ImageUpload) -> str:
        """
        Write the upload to the staging directory.

        Returns: Absolute path of the staged file.
        Raises:  FileStorageError if the directory or file cannot be written.
        """
        path = self.upload_dir / f"{uuid.uuid4()}{upload.extension}"

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(upload.content)
        except OSError as e:
            logger.error("Failed to stage upload at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            ) from e

        logger.debug("Staged upload %s (%d bytes)", path.name, len(upload.content))
        return str(path)

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a staged file. Missing files are ignored and OS errors are
        logged, never raised: the request outcome does not depend on it.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.debug("Cleaned up staged file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up staged file %s: %s", file_path, str(e))
