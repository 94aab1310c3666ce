"""
Image Optimizer
===============

Pillow-based re-encoding of captured screenshots.
"""

import io
from typing import Optional, Tuple

from PIL import Image

from screenshot_api.config.logging import get_logger
from screenshot_api.models.schemas import ImageFormat, ImageMetadata

logger = get_logger(__name__)


def optimize_image(
    data: bytes, format: Optional[str] = None, quality: Optional[int] = None
) -> Tuple[bytes, str]:
    """
    Re-encode an image in the requested format.

    Args:
        data: Source image bytes
        format: Target format (png, jpeg, webp), png by default
        quality: Lossy quality 1-100, 80 by default

    Returns:
        Tuple of encoded bytes and format name
    """
    target = ImageFormat(format or ImageFormat.PNG.value)
    quality = quality or 80

    image = Image.open(io.BytesIO(data))
    output = io.BytesIO()

    if target is ImageFormat.JPEG:
        # JPEG has no alpha channel
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(output, format="JPEG", quality=quality, progressive=True, optimize=True)
    elif target is ImageFormat.WEBP:
        image.save(output, format="WEBP", quality=quality)
    else:
        image.save(output, format="PNG", optimize=True, compress_level=9)

    encoded = output.getvalue()
    logger.debug(
        "Image optimized",
        format=target.value,
        original_size=len(data),
        optimized_size=len(encoded),
    )
    return encoded, target.value


def get_image_metadata(data: bytes) -> ImageMetadata:
    """Read dimensions and format of encoded image bytes."""
    with Image.open(io.BytesIO(data)) as image:
        width, height = image.size
        image_format = (image.format or "unknown").lower()
    return ImageMetadata(width=width, height=height, size=len(data), format=image_format)
