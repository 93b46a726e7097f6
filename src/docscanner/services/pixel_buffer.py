"""Pixel buffer adapter.

Decodes compressed image bytes into mutable 8-bit pixel buffers and encodes
them back. Buffers are numpy arrays of shape (height, width, channels) with
channels 4 (RGBA) or 1 (grayscale).
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from docscanner.config import SUPPORTED_MIME_TYPES
from docscanner.utils.exceptions import DecodeFailure, EncodeFailure

logger = logging.getLogger(__name__)

_ENCODE_FORMATS = {"PNG": "PNG", "JPEG": "JPEG", "JPG": "JPEG", "WEBP": "WEBP"}


@dataclass
class PixelBuffer:
    """Rectangular 8-bit pixel buffer.

    Attributes:
        data: uint8 array of shape (height, width, channels), channels in {1, 4}
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        if self.data.ndim == 2:
            self.data = self.data[:, :, np.newaxis]
        if self.data.ndim != 3 or self.data.shape[2] not in (1, 4):
            raise ValueError(f"Unsupported buffer shape {self.data.shape}")
        if self.data.dtype != np.uint8:
            raise ValueError(f"Buffer must be uint8, got {self.data.dtype}")

    @classmethod
    def blank(cls, width: int, height: int, channels: int = 4, value: int = 0) -> PixelBuffer:
        """Create a buffer filled with ``value`` (alpha is opaque for RGBA)."""
        data = np.full((height, width, channels), value, dtype=np.uint8)
        if channels == 4:
            data[:, :, 3] = 255
        return cls(data)

    @classmethod
    def from_rgb(cls, rgb: np.ndarray) -> PixelBuffer:
        """Wrap an HxWx3 RGB array as an opaque RGBA buffer."""
        h, w = rgb.shape[:2]
        data = np.empty((h, w, 4), dtype=np.uint8)
        data[:, :, :3] = rgb
        data[:, :, 3] = 255
        return cls(data)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def channels(self) -> int:
        return int(self.data.shape[2])

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @property
    def color(self) -> np.ndarray:
        """View of the colour channels (RGB for RGBA buffers, the single plane otherwise)."""
        return self.data[:, :, : min(3, self.channels)]

    @property
    def nbytes(self) -> int:
        return int(self.data.nbytes)

    def copy(self) -> PixelBuffer:
        return PixelBuffer(self.data.copy())

    def is_grayscale(self) -> bool:
        """True when every pixel has R == G == B."""
        if self.channels == 1 or self.is_empty:
            return True
        rgb = self.data[:, :, :3]
        return bool(np.all(rgb[:, :, 0] == rgb[:, :, 1]) and np.all(rgb[:, :, 1] == rgb[:, :, 2]))

    def luminance(self) -> np.ndarray:
        """Float32 luma plane used by the detectors."""
        if self.channels == 1:
            return self.data[:, :, 0].astype(np.float32)
        rgb = self.data[:, :, :3].astype(np.float32)
        return rgb[:, :, 0] * 0.299 + rgb[:, :, 1] * 0.587 + rgb[:, :, 2] * 0.114

    def to_pil(self) -> Image.Image:
        if self.channels == 1:
            return Image.fromarray(self.data[:, :, 0])
        return Image.fromarray(self.data)

    @classmethod
    def from_pil(cls, image: Image.Image) -> PixelBuffer:
        if image.mode == "L":
            return cls(np.array(image, dtype=np.uint8))
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(np.array(image, dtype=np.uint8))

    def resized(self, width: int, height: int) -> PixelBuffer:
        """Return a resampled copy (Lanczos)."""
        width = max(1, int(width))
        height = max(1, int(height))
        if (width, height) == (self.width, self.height):
            return self.copy()
        return PixelBuffer.from_pil(self.to_pil().resize((width, height), Image.Resampling.LANCZOS))

    def fit_within(self, max_side: int) -> tuple[PixelBuffer, float]:
        """Downscale so the long edge is at most ``max_side``.

        Returns:
            (buffer, scale) where scale maps new coordinates back to this buffer
        """
        long_side = max(self.width, self.height)
        if long_side <= max_side or self.is_empty:
            return self, 1.0
        factor = max_side / long_side
        scaled = self.resized(round(self.width * factor), round(self.height * factor))
        return scaled, self.width / scaled.width


def decode_image(data: bytes, mime_type: str | None = None) -> PixelBuffer:
    """Decode compressed image bytes into an RGBA buffer.

    EXIF orientation is applied so the buffer matches the displayed image.

    Args:
        data: Encoded image bytes
        mime_type: Declared MIME type; must be an image type when given

    Returns:
        RGBA PixelBuffer

    Raises:
        DecodeFailure: If the bytes are empty, of an unsupported type or malformed
    """
    if not data:
        raise DecodeFailure("empty input", mime_type=mime_type)
    if mime_type is not None and mime_type.lower() not in SUPPORTED_MIME_TYPES:
        raise DecodeFailure(f"unsupported format '{mime_type}'", mime_type=mime_type)

    try:
        with Image.open(io.BytesIO(data)) as pil_img:
            pil_img = ImageOps.exif_transpose(pil_img)
            buf = PixelBuffer.from_pil(pil_img.convert("RGBA"))
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug(f"Pillow could not decode input ({e}); trying OpenCV")
        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        if arr is None:
            raise DecodeFailure(str(e) or "malformed image data", mime_type=mime_type) from e
        buf = PixelBuffer.from_rgb(cv2.cvtColor(arr, cv2.COLOR_BGR2RGB))

    if buf.is_empty:
        raise DecodeFailure("image has zero area", mime_type=mime_type)

    logger.debug(f"Decoded {len(data)} bytes into {buf.width}x{buf.height} buffer")
    return buf


def quality_to_pil(quality: float) -> int:
    """Map a (0, 1] quality fraction to a Pillow JPEG quality."""
    return max(1, min(95, round(quality * 100)))


def encode_image(buf: PixelBuffer, fmt: str = "PNG", quality: float = 0.92) -> bytes:
    """Encode a buffer to compressed bytes.

    Args:
        buf: Buffer to encode
        fmt: PNG, JPEG or WEBP
        quality: Fraction in (0, 1] for lossy formats

    Returns:
        Encoded bytes

    Raises:
        EncodeFailure: If the format is unknown or the encoder fails
    """
    pil_format = _ENCODE_FORMATS.get(fmt.upper())
    if pil_format is None:
        raise EncodeFailure(f"unsupported output format '{fmt}'")
    if buf.is_empty:
        raise EncodeFailure("cannot encode a zero-area buffer")

    image = buf.to_pil()
    if pil_format == "JPEG" and image.mode == "RGBA":
        image = image.convert("RGB")

    out = io.BytesIO()
    try:
        if pil_format == "PNG":
            image.save(out, format="PNG", optimize=True)
        else:
            image.save(out, format=pil_format, quality=quality_to_pil(quality))
    except (OSError, ValueError) as e:
        raise EncodeFailure(str(e)) from e
    return out.getvalue()
