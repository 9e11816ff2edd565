"""
DisasterHub Backend — Image Storage Service
=============================================

What:  Validates, stores, serves and removes the images attached to
       disaster reports.
How:   Validates extension, size and MIME type of every upload before any
       byte is written, stores files in date-organized directories under
       UUID names, and hands back the public URL (`/api/files/<path>`)
       that is persisted on the disaster record.
Who:   Called by DisasterService (create, delete) and the /api/files route.

Security Model:
    1. Extension check:   fast rejection of obviously wrong files
    2. Size check:        per image, before anything is written
    3. MIME check:        libmagic inspects the header bytes
    4. UUID filename:     no user input ever reaches the file system path
    5. Path resolution:   served paths must stay inside storage_root

Directory Structure:
    uploads/
    └── 2024/
        └── 01/
            └── 15/
                ├── a1b2c3d4-5678.jpg
                └── e5f6g7h8-9012.png
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import aiofiles

from disasterhub.config import settings
from disasterhub.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

EXTENSION_MIME_FALLBACK = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# (original filename, raw bytes)
Upload = Tuple[str, bytes]


class FileService:
    """
    Manages the lifecycle of report images.

    Lifecycle of an image:
        1. DisasterService.create() → store_images() validates the whole batch
        2. Each file is written under YYYY/MM/DD/<uuid>.<ext>
        3. The public URL is saved in disaster.images
        4. GET /api/files/<path> → resolve_path() → FileResponse
        5. Admin deletes the disaster → cleanup_urls() removes the files
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.url_prefix = f"{settings.api_prefix}/files/"
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        """Return the normalized extension, or raise ValidationError."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Only image files are allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="images",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, actual_size: int) -> None:
        max_mb = settings.max_image_size / (1024 * 1024)
        if actual_size > settings.max_image_size:
            raise ValidationError(
                message=f"Image size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="images",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )
        if actual_size == 0:
            raise ValidationError(message="Uploaded image is empty.", field="images")

    def validate_mime_type(self, file_content: bytes, filename: str) -> str:
        """
        Validate the real content type from the file's magic bytes.

        Falls back to the extension when libmagic is not installed.
        """
        try:
            import magic
            mime_type = magic.from_buffer(file_content, mime=True)
        except ImportError:
            logger.warning(
                "python-magic not available — falling back to extension-based type detection. "
                "Install libmagic for production security."
            )
            ext = Path(filename).suffix.lower()
            mime_type = EXTENSION_MIME_FALLBACK.get(ext, "application/octet-stream")
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=f"File content type '{mime_type}' is not supported. Only image files are allowed.",
                field="images",
                context={"detected_mime": mime_type, "allowed": list(ALLOWED_MIME_TYPES.keys())},
            )
        return mime_type

    def validate(self, filename: str, content: bytes) -> str:
        """Run every check on one upload; returns its extension."""
        ext = self.validate_extension(filename)
        self.validate_size(len(content))
        self.validate_mime_type(content, filename)
        return ext

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write validated content to disk.

        Returns:
            (absolute_path, relative_path)

        Raises:
            FileStorageError: directory creation or write failed.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)

            logger.info("File stored: %s (%d bytes)", relative_path, len(content))
            return str(absolute_path), relative_path

        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def store_images(self, uploads: Sequence[Upload]) -> List[str]:
        """
        Validate a batch of report images, then store them.

        Nothing is written unless every image passes validation. If a write
        fails midway, the images already written are removed.

        Returns:
            Public URLs, in upload order.
        """
        if len(uploads) > settings.max_images_per_report:
            raise ValidationError(
                message=f"Too many images. Maximum is {settings.max_images_per_report} per report.",
                field="images",
                context={"received": len(uploads)},
            )

        extensions = [self.validate(filename, content) for filename, content in uploads]

        stored: List[str] = []
        try:
            for (_, content), ext in zip(uploads, extensions):
                absolute_path, relative_path = await self.store_file(content, ext)
                stored.append(absolute_path)
        except FileStorageError:
            for path in stored:
                await self.cleanup_file(path)
            raise

        return [self.public_url(Path(path).relative_to(self.storage_root).as_posix()) for path in stored]

    def public_url(self, relative_path: str) -> str:
        return f"{self.url_prefix}{relative_path}"

    def resolve_path(self, relative_path: str) -> Path:
        """
        Map a served path back to a file inside storage_root.

        Raises:
            NotFoundError: the file does not exist or the path escapes
                storage_root.
        """
        candidate = (self.storage_root / relative_path).resolve()
        try:
            candidate.relative_to(self.storage_root)
        except ValueError:
            raise NotFoundError(resource="file", resource_id=relative_path)
        if not candidate.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return candidate

    # ── Cleanup ───────────────────────────────────────────────────────────

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a file from storage. Best-effort: failures are logged, never
        raised.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except Exception as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def cleanup_urls(self, urls: Iterable[str]) -> None:
        """Remove the stored files behind a disaster's image URLs."""
        for url in urls:
            if not url.startswith(self.url_prefix):
                logger.debug("Cleanup: not a stored image URL: %s", url)
                continue
            try:
                path = self.resolve_path(url[len(self.url_prefix):])
            except NotFoundError:
                logger.debug("Cleanup: image already gone: %s", url)
                continue
            await self.cleanup_file(str(path))


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
