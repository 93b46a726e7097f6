"""
Document enhancement operations.

Grayscale conversion, median denoising, contrast stretch, brightness
normalisation, sharpening and adaptive thresholding over PixelBuffers.

All operations are total over valid buffers: they never raise for pixel
content, and a zero-area buffer is returned unchanged. The in-place
operations (grayscale, contrast, brightness) consume the buffer they are
given and return that same object; callers must not keep using a reference
to the pre-call state. The neighbourhood filters allocate a new buffer.
"""

import logging

import numpy as np
from scipy import ndimage

from docscanner.constants import LUMA_B, LUMA_G, LUMA_R, MAX_CHANNEL_VALUE, MID_CHANNEL_VALUE
from docscanner.services.pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

SHARPEN_KERNEL = np.array(
    [
        [-1, -1, -1],
        [-1, 9, -1],
        [-1, -1, -1],
    ],
    dtype=np.float64,
)


def _round_clamp(values: np.ndarray) -> np.ndarray:
    """Round half up and clamp to the 8-bit range."""
    return np.clip(np.floor(values + 0.5), 0, MAX_CHANNEL_VALUE).astype(np.uint8)


def to_grayscale(buf: PixelBuffer) -> PixelBuffer:
    """Convert RGB to luma in place (R = G = B), alpha untouched."""
    if buf.is_empty or buf.channels == 1:
        return buf

    rgb = buf.data[:, :, :3].astype(np.float64)
    gray = _round_clamp(rgb[:, :, 0] * LUMA_R + rgb[:, :, 1] * LUMA_G + rgb[:, :, 2] * LUMA_B)
    buf.data[:, :, 0] = gray
    buf.data[:, :, 1] = gray
    buf.data[:, :, 2] = gray
    return buf


def reduce_noise(buf: PixelBuffer, kernel: int = 3) -> PixelBuffer:
    """Median filter each colour channel over a k x k window.

    Edge pixels sample clamped coordinates. Alpha is copied through.

    Args:
        buf: Source buffer (not modified)
        kernel: Window size; even sizes grow to the next odd size

    Returns:
        New denoised buffer
    """
    if buf.is_empty:
        return buf

    size = 2 * (max(1, kernel) // 2) + 1
    out = buf.copy()
    if size == 1:
        return out

    color = buf.color
    out.data[:, :, : color.shape[2]] = ndimage.median_filter(
        color, size=(size, size, 1), mode="nearest"
    )
    return out


def enhance_contrast(buf: PixelBuffer, factor: float) -> PixelBuffer:
    """Stretch contrast around mid-gray in place.

    new = clamp(128 + (old - 128) * factor, 0, 255). A buffer where every
    channel is 128 is a fixed point for any factor.
    """
    if buf.is_empty:
        return buf

    color = buf.color
    stretched = MID_CHANNEL_VALUE + (color.astype(np.float64) - MID_CHANNEL_VALUE) * factor
    color[...] = _round_clamp(stretched)
    return buf


def adjust_brightness(buf: PixelBuffer, target: float) -> PixelBuffer:
    """Shift all colour channels so the mean of the first channel approaches ``target``.

    The offset is computed once from the global mean, then clamping limits
    how close the result can get for buffers with saturated regions.
    """
    if buf.is_empty:
        return buf

    current = float(buf.data[:, :, 0].mean())
    adjustment = target - current
    logger.debug(f"Brightness mean {current:.1f} -> target {target:.1f} (offset {adjustment:+.1f})")

    color = buf.color
    color[...] = _round_clamp(color.astype(np.float64) + adjustment)
    return buf


def apply_convolution(
    buf: PixelBuffer,
    kernel: np.ndarray,
    divisor: float | None = None,
    offset: float = 0.0,
) -> PixelBuffer:
    """Apply a square, odd-sized kernel to every colour channel.

    Edge pixels sample clamped coordinates; alpha is copied through.

    Args:
        buf: Source buffer (not modified)
        kernel: Square 2D kernel with odd side length
        divisor: Normalisation divisor; defaults to the kernel sum (1 when the sum is ~0)
        offset: Constant added after normalisation

    Returns:
        New filtered buffer

    Raises:
        ValueError: If the kernel is not square with odd size
    """
    k = np.asarray(kernel, dtype=np.float64)
    if k.ndim != 2 or k.shape[0] != k.shape[1]:
        raise ValueError("Kernel must be square")
    if k.shape[0] % 2 == 0:
        raise ValueError("Kernel size must be odd")

    if buf.is_empty:
        return buf

    if divisor is None:
        divisor = float(k.sum())
        if abs(divisor) < 1e-4:
            divisor = 1.0

    out = buf.copy()
    color = buf.color.astype(np.float64)
    for c in range(color.shape[2]):
        filtered = ndimage.correlate(color[:, :, c], k, mode="nearest")
        out.data[:, :, c] = _round_clamp(filtered / divisor + offset)
    return out


def sharpen(buf: PixelBuffer) -> PixelBuffer:
    """3x3 sharpening whose kernel sums to 1, so mean brightness is preserved."""
    return apply_convolution(buf, SHARPEN_KERNEL, divisor=1.0)


def apply_adaptive_threshold(buf: PixelBuffer, block_size: int = 15, constant: float = 10) -> PixelBuffer:
    """Binarise against the local mean for a crisp black-and-white page.

    A pixel becomes black when it is darker than its block mean minus
    ``constant``, white otherwise. Alpha is copied through.
    """
    if buf.is_empty:
        return buf

    size = 2 * (max(1, block_size) // 2) + 1
    luma = buf.luminance().astype(np.float64)
    local_mean = ndimage.uniform_filter(luma, size=size, mode="nearest")
    binary = np.where(luma < local_mean - constant, 0, MAX_CHANNEL_VALUE).astype(np.uint8)

    out = buf.copy()
    for c in range(buf.color.shape[2]):
        out.data[:, :, c] = binary
    return out


def apply_enhancements(
    buf: PixelBuffer,
    *,
    grayscale: bool = True,
    denoise: bool = False,
    contrast_factor: float | None = None,
    brightness_target: float | None = None,
    sharpen_passes: int = 0,
    threshold: bool = False,
) -> PixelBuffer:
    """Run the enhancement chain in its fixed order.

    grayscale -> denoise -> contrast -> brightness -> sharpen -> threshold.
    The returned buffer may be ``buf`` itself.
    """
    if buf.is_empty:
        return buf

    if grayscale:
        buf = to_grayscale(buf)
    if denoise:
        buf = reduce_noise(buf)
    if contrast_factor is not None:
        buf = enhance_contrast(buf, contrast_factor)
    if brightness_target is not None:
        buf = adjust_brightness(buf, brightness_target)
    for _ in range(max(0, sharpen_passes)):
        buf = sharpen(buf)
    if threshold:
        buf = apply_adaptive_threshold(buf)
    return buf
