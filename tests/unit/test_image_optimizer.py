"""
Unit Tests for Image Processing
===============================

Tests for Pillow re-encoding, image metadata and local screenshot storage.
"""

import io

import pytest
from PIL import Image

from screenshot_api.core.rendering.image_optimizer import get_image_metadata, optimize_image
from screenshot_api.core.storage import LocalStorageUploader, StorageError

from tests.utils.helpers import make_png


class TestOptimizeImage:
    """Test cases for optimize_image."""

    def test_png_default(self):
        encoded, fmt = optimize_image(make_png(100, 50))

        assert fmt == "png"
        assert Image.open(io.BytesIO(encoded)).format == "PNG"

    @pytest.mark.parametrize("fmt,pil_format", [("jpeg", "JPEG"), ("webp", "WEBP")])
    def test_lossy_formats(self, fmt, pil_format):
        encoded, result_format = optimize_image(make_png(100, 50), fmt, quality=60)

        assert result_format == fmt
        with Image.open(io.BytesIO(encoded)) as image:
            assert image.format == pil_format
            assert image.size == (100, 50)

    def test_jpeg_drops_alpha(self):
        output = io.BytesIO()
        Image.new("RGBA", (20, 20), (255, 0, 0, 128)).save(output, format="PNG")

        encoded, _ = optimize_image(output.getvalue(), "jpeg")

        assert Image.open(io.BytesIO(encoded)).mode == "RGB"

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            optimize_image(make_png(), "gif")


class TestImageMetadata:
    """Test cases for get_image_metadata."""

    def test_reads_dimensions(self):
        data = make_png(320, 240)
        metadata = get_image_metadata(data)

        assert metadata.width == 320
        assert metadata.height == 240
        assert metadata.size == len(data)
        assert metadata.format == "png"


class TestLocalStorageUploader:
    """Test cases for LocalStorageUploader."""

    @pytest.mark.asyncio
    async def test_upload_writes_file(self, temp_dir):
        uploader = LocalStorageUploader(temp_dir, "http://localhost:3000/static/")
        data = make_png()

        url = await uploader.upload("job-1", data, "png")

        assert url == "http://localhost:3000/static/screenshots/job-1.png"
        assert (temp_dir / "screenshots" / "job-1.png").read_bytes() == data

    @pytest.mark.asyncio
    async def test_upload_failure(self, temp_dir):
        blocker = temp_dir / "blocked"
        blocker.write_text("not a directory")
        uploader = LocalStorageUploader(blocker, "http://localhost:3000/static")

        with pytest.raises(StorageError) as exc_info:
            await uploader.upload("job-1", b"data", "png")

        assert exc_info.value.code == "UPLOAD_FAILED"
        assert str(exc_info.value) == "Failed to upload image to storage"

    def test_path_for(self, temp_dir):
        uploader = LocalStorageUploader(temp_dir, "http://x")
        assert uploader.path_for("abc", "webp") == temp_dir / "screenshots" / "abc.webp"
