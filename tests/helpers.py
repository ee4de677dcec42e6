from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from core import utils
from core.templates import AlphaTemplate


def create_gray_image(width: int, height: int, value: int = 128) -> np.ndarray:
    """Opaque RGBA buffer filled with a single gray level."""
    buffer = np.full((height, width, 4), value, dtype=np.uint8)
    buffer[:, :, 3] = 255
    return buffer


def create_random_image(width: int, height: int, *, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    buffer = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    buffer[:, :, 3] = 255
    return buffer


def make_template(
    opacity: np.ndarray,
    *,
    name: str = "small",
    margin: int = 32,
    overlay_color: Sequence[int] = (255, 255, 255),
) -> AlphaTemplate:
    return AlphaTemplate.from_luminance(
        np.asarray(opacity, dtype=np.uint8), name=name, margin=margin, overlay_color=overlay_color
    )


def make_ramp_template(size: int = 48, margin: int = 32, *, name: str = "small") -> AlphaTemplate:
    """Template whose opacity ramps from 0 to 255 in row-major order."""
    ramp = np.round(np.linspace(0, 255, size * size)).reshape(size, size)
    return make_template(ramp, name=name, margin=margin)


def make_uniform_template(
    value: int, size: int = 48, margin: int = 32, *, name: str = "small"
) -> AlphaTemplate:
    return make_template(np.full((size, size), value), name=name, margin=margin)


def composite(original: np.ndarray, template: AlphaTemplate) -> np.ndarray:
    """Blend the template's overlay colour onto ``original`` at its footprint."""
    result = original.copy()
    height, width = original.shape[:2]
    offset_x, offset_y = utils.footprint_offset(
        width, height, template.width, template.height, template.margin
    )
    if offset_x < 0 or offset_y < 0:
        raise ValueError("Template does not fit the image.")
    region = result[offset_y : offset_y + template.height, offset_x : offset_x + template.width, :3]
    a = template.alpha[:, :, np.newaxis]
    overlay = np.asarray(template.overlay_color, dtype=np.float64)
    blended = region.astype(np.float64) * (1.0 - a) + overlay * a
    region[...] = utils.round_half_up(blended).astype(np.uint8)
    return result


def footprint_slices(image: np.ndarray, template: AlphaTemplate):
    height, width = image.shape[:2]
    offset_x, offset_y = utils.footprint_offset(
        width, height, template.width, template.height, template.margin
    )
    return (
        slice(offset_y, offset_y + template.height),
        slice(offset_x, offset_x + template.width),
    )


def outside_footprint_mask(image: np.ndarray, template: AlphaTemplate) -> np.ndarray:
    mask = np.ones(image.shape[:2], dtype=bool)
    rows, cols = footprint_slices(image, template)
    mask[rows, cols] = False
    return mask


def config_overrides(assets_dir: Path, *, mode: Optional[str] = None) -> dict:
    overrides: dict = {"templates": {"assets_dir": str(assets_dir)}}
    if mode is not None:
        overrides["dispatcher"] = {"mode": mode}
    return overrides
