"""
CareNotes Backend - Receipt Storage Unit Tests
===============================================

What:  Tests for FileService validation (extension, size, MIME type) and storage.
How:   Temporary storage roots; libmagic is mocked where the test is about
       what happens after detection.

Test Strategy:
    - Allowed extensions (.png, .jpg, .jpeg, .pdf), case-insensitive
    - Rejected extensions (.gif, .exe, none)
    - Size limits around settings.max_file_size
    - Sniffed content type decides the stored extension
"""

from pathlib import Path
from unittest.mock import patch

import magic
import pytest

from carenotes.config import settings
from carenotes.exceptions import FileStorageError, ValidationError
from carenotes.services.file_service import FileService


class TestFileValidation:
    """Tests for receipt validation in FileService."""

    @pytest.fixture(autouse=True)
    def _service(self, temp_storage):
        self.service = FileService(storage_root=temp_storage)

    # ── Extension Validation ──────────────────────────────────────────────

    def test_validate_extension_allowed(self):
        """PNG, JPEG and PDF receipts pass."""
        for name in ("receipt.png", "receipt.jpg", "receipt.jpeg", "receipt.pdf"):
            assert self.service.validate_extension(name) == Path(name).suffix

    def test_validate_extension_uppercase(self):
        """Extension check should be case-insensitive."""
        assert self.service.validate_extension("RECEIPT.JPG") == ".jpg"
        assert self.service.validate_extension("Scan.Pdf") == ".pdf"

    def test_validate_extension_gif_rejected(self):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_extension("animation.gif")

    def test_validate_extension_no_extension_rejected(self):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_extension("noextension")

    def test_validate_extension_exe_rejected(self):
        """Executables are rejected before anything is read."""
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_extension("receipt.exe")
        assert exc_info.value.field == "file"

    # ── Size Validation ───────────────────────────────────────────────────

    def test_validate_size_within_limit(self):
        self.service.validate_size(None, 1000)

    def test_validate_size_at_limit(self):
        """Exactly max_file_size is allowed."""
        self.service.validate_size(settings.max_file_size, settings.max_file_size)

    def test_validate_size_over_limit(self):
        with pytest.raises(ValidationError, match="exceeds the maximum size"):
            self.service.validate_size(None, settings.max_file_size + 1)

    def test_content_length_checked_first(self):
        """An oversized Content-Length is rejected even if the body is small."""
        with pytest.raises(ValidationError, match="exceeds the maximum size"):
            self.service.validate_size(settings.max_file_size + 1, 10)

    def test_validate_size_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(0, 0)

    # ── MIME Validation ───────────────────────────────────────────────────

    def test_mime_type_png(self, sample_png_bytes):
        with patch("carenotes.services.file_service.magic.from_buffer", return_value="image/png"):
            assert self.service.validate_mime_type(sample_png_bytes) == "image/png"

    def test_mime_type_rejected(self):
        """A renamed text file is caught by its content."""
        with patch("carenotes.services.file_service.magic.from_buffer", return_value="text/plain"):
            with pytest.raises(ValidationError, match="text/plain"):
                self.service.validate_mime_type(b"not really a receipt")

    def test_libmagic_failure(self):
        """Detection errors are storage errors, not the client's fault."""
        with patch(
            "carenotes.services.file_service.magic.from_buffer",
            side_effect=magic.MagicException("broken magic database"),
        ):
            with pytest.raises(FileStorageError):
                self.service.validate_mime_type(b"%PDF-1.4")


class TestFileStorage:

    @pytest.fixture(autouse=True)
    def _service(self, temp_storage):
        self.service = FileService(storage_root=temp_storage)

    @pytest.mark.asyncio
    async def test_validate_and_store_creates_date_directory(self, sample_pdf_bytes):
        """Receipts are stored under receipts/YYYY/MM/DD with a UUID name."""
        with patch("carenotes.services.file_service.magic.from_buffer", return_value="application/pdf"):
            abs_path, rel_path = await self.service.validate_and_store(
                filename="till receipt.pdf",
                content=sample_pdf_bytes,
                content_length=len(sample_pdf_bytes),
            )

        parts = rel_path.split("/")
        assert parts[0] == "receipts"
        assert len(parts) == 5
        assert rel_path.endswith(".pdf")
        assert "till receipt" not in rel_path
        assert Path(abs_path).read_bytes() == sample_pdf_bytes

    @pytest.mark.asyncio
    async def test_extension_follows_content(self, sample_png_bytes):
        """A PNG uploaded as .jpg is stored as .png."""
        with patch("carenotes.services.file_service.magic.from_buffer", return_value="image/png"):
            _, rel_path = await self.service.validate_and_store("photo.jpg", sample_png_bytes)

        assert rel_path.endswith(".png")

    @pytest.mark.asyncio
    async def test_write_failure_is_storage_error(self, sample_png_bytes):
        with patch("carenotes.services.file_service.aiofiles.open", side_effect=OSError("disk full")):
            with pytest.raises(FileStorageError, match="Failed to save"):
                await self.service.store_file(sample_png_bytes, ".png")

    # ── Cleanup ───────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_cleanup_file_removes_file(self, tmp_path):
        test_file = tmp_path / "receipt.png"
        test_file.write_bytes(b"test content")

        await self.service.cleanup_file(str(test_file))
        assert not test_file.exists()

    @pytest.mark.asyncio
    async def test_cleanup_file_nonexistent(self, tmp_path):
        """cleanup_file should not raise for non-existent files."""
        await self.service.cleanup_file(str(tmp_path / "nonexistent.png"))
