"""Pixel buffer and image I/O helpers for the watermark removal core."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Common file extensions we explicitly allow when validating paths.
SUPPORTED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tiff", ".tif"}

CHANNELS = 4


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Perceptual brightness of the leading R, G, B channels as float64."""
    rgb = pixels[..., :3].astype(np.float64)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def round_half_up(values: np.ndarray) -> np.ndarray:
    # np.rint rounds half to even; .5 must round up here.
    return np.floor(values + 0.5)


def footprint_offset(
    image_width: int, image_height: int, template_width: int, template_height: int, margin: int
) -> Tuple[int, int]:
    """Top-left corner of a bottom-right anchored footprint."""
    return (
        image_width - template_width - margin,
        image_height - template_height - margin,
    )


def to_rgba(image: np.ndarray) -> np.ndarray:
    """Convert an OpenCV-decoded array (gray, BGR or BGRA) to an RGBA buffer."""
    if image is None or image.size == 0:
        raise ValueError("Cannot convert an empty image.")
    if image.dtype == np.uint16:
        image = round_half_up(image / 257.0).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise ValueError(f"Unsupported image dtype: {image.dtype}")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    raise ValueError(f"Unsupported channel count: {channels}")


def as_pixel_buffer(
    data: Union[np.ndarray, bytes, bytearray, memoryview],
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> np.ndarray:
    """Return ``data`` as a C-contiguous ``(height, width, 4)`` uint8 RGBA array.

    Flat byte sequences require ``width`` and ``height``. Arrays may be
    grayscale, RGB or RGBA and are expanded to RGBA (opaque alpha).
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        if width is None or height is None:
            raise ValueError("width and height are required for raw pixel bytes.")
        flat = np.frombuffer(data, dtype=np.uint8)
        if flat.size != width * height * CHANNELS:
            raise ValueError(
                f"Expected {width * height * CHANNELS} bytes for a {width}x{height} buffer, "
                f"received {flat.size}."
            )
        return flat.reshape(height, width, CHANNELS).copy()

    array = np.asarray(data)
    if array.size == 0:
        raise ValueError("Pixel buffer is empty.")
    if array.dtype != np.uint8:
        raise ValueError(f"Pixel buffer must be uint8, received {array.dtype}.")
    if array.ndim == 1:
        if width is None or height is None:
            raise ValueError("width and height are required for a flat pixel array.")
        if array.size != width * height * CHANNELS:
            raise ValueError(
                f"Flat pixel array of size {array.size} does not match {width}x{height}."
            )
        array = array.reshape(height, width, CHANNELS)
    elif array.ndim == 2:
        array = np.dstack([array, array, array, np.full_like(array, 255)])
    elif array.ndim == 3 and array.shape[2] == 3:
        array = np.dstack([array, np.full(array.shape[:2], 255, dtype=np.uint8)])
    elif array.ndim != 3 or array.shape[2] != CHANNELS:
        raise ValueError(f"Unsupported pixel buffer shape: {array.shape}")

    if width is not None and array.shape[1] != width:
        raise ValueError(f"Buffer width {array.shape[1]} does not match {width}.")
    if height is not None and array.shape[0] != height:
        raise ValueError(f"Buffer height {array.shape[0]} does not match {height}.")
    return np.ascontiguousarray(array)


def decode_image(data: Union[bytes, bytearray, memoryview]) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) into an RGBA buffer."""
    encoded = np.frombuffer(data, dtype=np.uint8)
    if encoded.size == 0:
        raise ValueError("Cannot decode empty image data.")
    image = cv2.imdecode(encoded, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError("Unable to decode image data.")
    return to_rgba(image)


def load_image(path: PathLike) -> np.ndarray:
    """Load an image file as an RGBA pixel buffer.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If OpenCV fails to decode the image.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    if path.suffix.lower() not in SUPPORTED_IMAGE_EXTENSIONS:
        logger.warning("Attempting to load image with uncommon extension: %s", path.suffix)
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(f"Unable to decode image: {path}")
    buffer = to_rgba(image)
    logger.debug("Loaded image %s with shape %s", path, buffer.shape)
    return buffer


def save_image(path: PathLike, buffer: np.ndarray) -> None:
    """Persist an RGBA buffer to disk, creating parent directories if needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if buffer is None or buffer.size == 0:
        raise ValueError("Cannot save empty image.")
    if buffer.ndim != 3 or buffer.shape[2] != CHANNELS:
        raise ValueError(f"Expected an RGBA buffer, received shape {buffer.shape}.")
    if path.suffix.lower() in {".jpg", ".jpeg"}:
        encoded = cv2.cvtColor(buffer, cv2.COLOR_RGBA2BGR)
    else:
        encoded = cv2.cvtColor(buffer, cv2.COLOR_RGBA2BGRA)
    success = cv2.imwrite(str(path), encoded)
    if not success:
        raise IOError(f"Failed to save image at {path}")
    logger.debug("Saved image to %s", path)


__all__ = [
    "PathLike",
    "SUPPORTED_IMAGE_EXTENSIONS",
    "luminance",
    "round_half_up",
    "footprint_offset",
    "to_rgba",
    "as_pixel_buffer",
    "decode_image",
    "load_image",
    "save_image",
]
