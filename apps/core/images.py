"""Image compression for uploaded vehicle and part photos.

Photos straight from a phone are several megabytes; before they go to object
storage they are:
    1. Scaled down to fit max_width, then max_height (aspect ratio kept,
       never upscaled)
    2. Re-encoded as JPEG (default), WebP or PNG at a low quality setting

Usage:
    from apps.core.images import compress_image

    result = compress_image(raw_bytes, "IMG_2041.HEIC.jpg")
    # result.data -> bytes, result.content_type -> "image/jpeg"
"""

import logging
import math
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePath
from typing import List, Optional, Tuple

from PIL import Image

from config import settings

logger = logging.getLogger(__name__)

PIL_FORMATS = {"jpeg": "JPEG", "webp": "WEBP", "png": "PNG"}
EXTENSIONS = {"jpeg": ".jpg", "webp": ".webp", "png": ".png"}


@dataclass
class CompressionOptions:
    quality: float = settings.IMAGE_QUALITY  # 0.1 - 1.0
    max_width: int = settings.IMAGE_MAX_WIDTH
    max_height: int = settings.IMAGE_MAX_HEIGHT
    format: str = settings.IMAGE_FORMAT  # jpeg, webp, png


@dataclass
class CompressedImage:
    data: bytes
    filename: str
    content_type: str
    width: int
    height: int


def fit_dimensions(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Scale to max_width first, then to max_height, keeping aspect ratio."""
    w, h = float(width), float(height)
    if w > max_width:
        h = h * max_width / w
        w = max_width
    if h > max_height:
        w = w * max_height / h
        h = max_height
    return max(1, round(w)), max(1, round(h))


def compress_image(data: bytes, filename: str, options: Optional[CompressionOptions] = None) -> CompressedImage:
    opts = options or CompressionOptions()
    fmt = opts.format.lower()
    if fmt not in PIL_FORMATS:
        raise ValueError(f"Unsupported image format: {opts.format}")

    try:
        img = Image.open(BytesIO(data))
        img.load()
    except Exception as e:
        raise ValueError("Failed to load image") from e

    width, height = fit_dimensions(img.width, img.height, opts.max_width, opts.max_height)
    if (width, height) != img.size:
        img = img.resize((width, height), Image.LANCZOS)

    if fmt == "jpeg" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    quality = min(100, max(1, int(round(opts.quality * 100))))
    buffer = BytesIO()
    if fmt == "png":
        img.save(buffer, format=PIL_FORMATS[fmt], optimize=True)
    else:
        img.save(buffer, format=PIL_FORMATS[fmt], quality=quality)

    return CompressedImage(
        data=buffer.getvalue(),
        filename=str(PurePath(filename or "image").with_suffix(EXTENSIONS[fmt])),
        content_type=f"image/{fmt}",
        width=width,
        height=height,
    )


def compress_many(
    files: List[Tuple[bytes, str, str]], options: Optional[CompressionOptions] = None
) -> List[CompressedImage]:
    """Compress (data, filename, content_type) triples.

    An image that cannot be compressed is passed through unchanged.
    """
    results = []
    for data, filename, content_type in files:
        try:
            results.append(compress_image(data, filename, options))
        except Exception as e:
            logger.error("Failed to compress %s: %s", filename, e)
            results.append(CompressedImage(data=data, filename=filename, content_type=content_type, width=0, height=0))
    return results


def file_size_mb(size_bytes: int) -> float:
    return size_bytes / (1024 * 1024)


def format_file_size(size_bytes: int) -> str:
    if size_bytes == 0:
        return "0 Bytes"

    k = 1024
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size_bytes) / math.log(k))), len(sizes) - 1)
    value = round(size_bytes / math.pow(k, i), 2)
    return f"{value:g} {sizes[i]}"
