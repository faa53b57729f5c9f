"""
CareNotes Backend - Receipt Storage Service
============================================

What:  Validates and stores receipts uploaded against allowance expenditure.
How:   Extension check → size check → MIME sniffing with libmagic → async
       write into a date-organized directory under a UUID filename.
Who:   Called by AllowanceService.upload_receipt().

Directory Structure:
    storage/
    └── receipts/
        └── 2024/
            └── 03/
                └── 15/
                    ├── a1b2c3d4-....jpg
                    └── e5f6g7h8-....pdf

Stored paths are relative to the storage root; that is what the
expenditure's receipt_path column holds.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import magic

from carenotes.config import settings
from carenotes.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "application/pdf": ".pdf",
}
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".pdf"}

RECEIPTS_DIR = "receipts"


class FileService:
    """
    Receipt upload lifecycle.

        1. validate_extension()   rejects obviously wrong files, no I/O
        2. validate_size()        Content-Length first, then the real size
        3. validate_mime_type()   magic bytes, catches renamed files
        4. store_file()           aiofiles write, returns (absolute, relative)
        5. cleanup_file()         best-effort removal when the DB step fails
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"Receipt type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks the Content-Length header (before reading) and the actual size.

        Raises:
            ValidationError: Empty file, or larger than settings.max_file_size
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Receipt file is empty.", field="file")

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"Receipt exceeds the maximum size of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"Receipt ({actual_size / (1024 * 1024):.1f}MB) exceeds "
                    f"the maximum size of {max_mb:.0f}MB."
                ),
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, file_content: bytes) -> str:
        """
        Detects the real content type from the file's magic bytes.

        Returns:
            Detected MIME type (e.g. "application/pdf")

        Raises:
            ValidationError: Content is not PNG, JPEG or PDF
            FileStorageError: libmagic failed
        """
        try:
            mime_type = magic.from_buffer(file_content[:2048], mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify the receipt file type. Please try again.",
                context={"error": str(e)},
            ) from e

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"Receipt content type '{mime_type}' is not supported. "
                    f"Upload a PNG, JPEG or PDF."
                ),
                field="file",
                context={"detected_mime": mime_type, "allowed": list(ALLOWED_MIME_TYPES)},
            )
        return mime_type

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """receipts/YYYY/MM/DD/<uuid><ext>, as (absolute, relative)."""
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{RECEIPTS_DIR}/{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Writes content to disk without blocking the event loop.

        Raises:
            FileStorageError: Directory creation or write failed
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store receipt at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save the uploaded receipt. Please try again.",
                context={"os_error": str(e)},
            ) from e

        logger.info("Receipt stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    def resolve(self, relative_path: str) -> Path:
        """
        Absolute path of a stored receipt.

        Raises:
            FileStorageError: Path points outside the storage root
        """
        path = (self.storage_root / relative_path).resolve()
        if not path.is_relative_to(self.storage_root):
            raise FileStorageError(
                message="Stored receipt path is invalid.",
                context={"receipt_path": relative_path},
            )
        return path

    async def cleanup_file(self, file_path: str) -> None:
        """Deletes a stored file if present. Failures are logged, never raised."""
        path = Path(file_path)
        try:
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """Full pipeline, cheapest check first. Returns (absolute_path, relative_path)."""
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        mime_type = self.validate_mime_type(content)
        stored_ext = ALLOWED_MIME_TYPES[mime_type]
        if stored_ext != ext and ext != ".jpeg":
            logger.info("Receipt %s has %s content; storing as %s", filename, mime_type, stored_ext)
        # Extension follows the sniffed content, not the client's filename
        return await self.store_file(content, stored_ext)


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
