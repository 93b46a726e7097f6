"""
Compression and thumbnail generation.

Final page images are re-encoded as JPEG within a byte budget and a maximum
long-edge dimension. Quality is lowered first; once it reaches the floor the
image is downscaled and the quality search starts over. The only case where
the budget may be exceeded is a 1x1 image at minimum quality, which cannot
be reduced any further.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from docscanner.constants import (
    BYTES_PER_MB,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_DIMENSION_PX,
    DEFAULT_MAX_FILE_SIZE_MB,
    DIMENSION_STEP,
    MIN_JPEG_QUALITY,
    QUALITY_STEP,
    THUMBNAIL_MAX_HEIGHT,
    THUMBNAIL_MAX_WIDTH,
    THUMBNAIL_QUALITY,
)
from docscanner.services.pixel_buffer import PixelBuffer, decode_image, encode_image
from docscanner.utils.exceptions import EncodeFailure

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_BYTES = int(DEFAULT_MAX_FILE_SIZE_MB * BYTES_PER_MB)


@dataclass(frozen=True)
class CompressionStats:
    """Before/after sizes of one compression run."""

    original_size: int
    compressed_size: int

    @property
    def compression_ratio(self) -> float:
        if self.compressed_size == 0:
            return 0.0
        return self.original_size / self.compressed_size

    @property
    def size_reduction_percent(self) -> float:
        if self.original_size == 0:
            return 0.0
        return (self.original_size - self.compressed_size) / self.original_size * 100


def _fit_dimension(buf: PixelBuffer, max_dimension: int) -> PixelBuffer:
    long_side = max(buf.width, buf.height)
    if long_side <= max_dimension:
        return buf
    factor = max_dimension / long_side
    return buf.resized(max(1, round(buf.width * factor)), max(1, round(buf.height * factor)))


def compress(
    buf: PixelBuffer,
    max_size: int = DEFAULT_MAX_SIZE_BYTES,
    max_dimension: int = DEFAULT_MAX_DIMENSION_PX,
    quality: float = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """Encode ``buf`` as JPEG within a byte budget and long-edge limit.

    Args:
        buf: Page buffer (not modified)
        max_size: Maximum output size in bytes
        max_dimension: Maximum width and height in pixels
        quality: Starting JPEG quality in (0, 1]

    Returns:
        JPEG bytes no larger than ``max_size``, unless the image has already
        been reduced to a single pixel at minimum quality

    Raises:
        EncodeFailure: If the buffer is empty or the encoder fails
    """
    if buf.is_empty:
        raise EncodeFailure("cannot compress a zero-area buffer")
    if max_dimension < 1:
        raise EncodeFailure(f"invalid max dimension {max_dimension}")

    current = _fit_dimension(buf, max_dimension)
    start_quality = min(1.0, max(MIN_JPEG_QUALITY, quality))

    while True:
        q = start_quality
        while True:
            data = encode_image(current, "JPEG", q)
            if len(data) <= max_size:
                logger.debug(
                    f"Compressed {buf.width}x{buf.height} -> {current.width}x{current.height} "
                    f"at q={q:.2f}: {len(data)} bytes"
                )
                return data
            if q <= MIN_JPEG_QUALITY:
                break
            q = max(MIN_JPEG_QUALITY, q * QUALITY_STEP)

        if current.width == 1 and current.height == 1:
            logger.warning(f"Cannot reach {max_size} bytes even at 1x1; returning {len(data)} bytes")
            return data

        new_w = max(1, int(current.width * DIMENSION_STEP))
        new_h = max(1, int(current.height * DIMENSION_STEP))
        current = current.resized(new_w, new_h)


def thumbnail(
    buf: PixelBuffer,
    max_w: int = THUMBNAIL_MAX_WIDTH,
    max_h: int = THUMBNAIL_MAX_HEIGHT,
    quality: float = THUMBNAIL_QUALITY,
) -> bytes:
    """Aspect-preserving JPEG preview that fits in ``max_w`` x ``max_h``.

    Images already inside the box keep their size; they are never upscaled.

    Raises:
        EncodeFailure: If the buffer is empty or the encoder fails
    """
    if buf.is_empty:
        raise EncodeFailure("cannot create a thumbnail of a zero-area buffer")

    scale = min(max_w / buf.width, max_h / buf.height, 1.0)
    width = max(1, round(buf.width * scale))
    height = max(1, round(buf.height * scale))
    small = buf if (width, height) == (buf.width, buf.height) else buf.resized(width, height)
    return encode_image(small, "JPEG", quality)


def needs_compression(
    data: bytes,
    max_size: int = DEFAULT_MAX_SIZE_BYTES,
    max_dimension: int = DEFAULT_MAX_DIMENSION_PX,
) -> bool:
    """Whether encoded bytes exceed the size budget or dimension limit.

    Unreadable data is reported as needing compression.
    """
    if len(data) > max_size:
        return True
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not read image header: {e}")
        return True
    return width > max_dimension or height > max_dimension


def compression_stats(
    data: bytes,
    max_size: int = DEFAULT_MAX_SIZE_BYTES,
    max_dimension: int = DEFAULT_MAX_DIMENSION_PX,
    quality: float = DEFAULT_JPEG_QUALITY,
) -> CompressionStats:
    """Compress encoded bytes and report the size change.

    Raises:
        DecodeFailure: If ``data`` cannot be decoded
        EncodeFailure: If compression fails
    """
    compressed = compress(decode_image(data), max_size, max_dimension, quality)
    return CompressionStats(original_size=len(data), compressed_size=len(compressed))
