"""
Icon and screenshot compression before upload.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1280
COMPRESSION_QUALITY = 60
MAX_BYTES = 1024 * 1024


@dataclass
class CompressedImage:
    data: bytes
    content_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


def _fit_within(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    if width <= max_dimension and height <= max_dimension:
        return width, height
    ratio = min(max_dimension / width, max_dimension / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def compress_image(
    data: bytes,
    content_type: str,
    filename: str,
    *,
    max_bytes: int = MAX_BYTES,
    max_dimension: int = MAX_DIMENSION,
    quality: int = COMPRESSION_QUALITY,
) -> CompressedImage:
    """
    Scale an oversized image to fit `max_dimension` and re-encode it as JPEG.

    Non-image payloads and images already within `max_bytes` are returned
    unchanged, as is anything Pillow cannot decode.
    """
    original = CompressedImage(data=data, content_type=content_type, filename=filename)
    if not (content_type or "").startswith("image/"):
        return original
    if len(data) <= max_bytes:
        return original

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = _fit_within(img.width, img.height, max_dimension)
            if (width, height) != (img.width, img.height):
                img = img.resize((width, height), Image.Resampling.LANCZOS)
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Image compression failed for %s, keeping original: %s", filename, exc)
        return original

    compressed = out.getvalue()
    stem, _ = os.path.splitext(filename or "image")
    logger.info(
        "Compressed %s: %.2fMB -> %.2fMB",
        filename,
        len(data) / 1024 / 1024,
        len(compressed) / 1024 / 1024,
    )
    return CompressedImage(
        data=compressed, content_type="image/jpeg", filename=f"{stem}.jpg"
    )
