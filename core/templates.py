"""Overlay alpha templates derived from grayscale-on-black bitmaps."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from . import utils
from .errors import AssetLoadError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
RawBitmap = Union[PathLike, bytes, bytearray, np.ndarray]
Color = Tuple[int, int, int]

DEFAULT_OVERLAY_COLOR: Color = (255, 255, 255)


@dataclass(frozen=True, eq=False)
class AlphaTemplate:
    """Immutable opacity map for one overlay footprint.

    ``pixels`` is the preprocessed RGBA bitmap (RGB = overlay colour,
    A = source luminance); ``alpha`` is ``pixels[..., 3] / 255``.
    """

    name: str
    margin: int
    overlay_color: Color
    pixels: np.ndarray
    alpha: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_pixels(cls, pixels: np.ndarray, *, name: str = "", margin: int = 0) -> "AlphaTemplate":
        """Build a template from an already preprocessed RGBA bitmap.

        The overlay colour is read back from the RGB channels.
        """
        if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.size == 0:
            raise ValueError(f"Template pixels must be a non-empty RGBA array, got {pixels.shape}.")
        if margin < 0:
            raise ValueError("margin must be non-negative.")
        frozen = np.array(pixels, dtype=np.uint8, copy=True)
        frozen.flags.writeable = False
        alpha = frozen[:, :, 3].astype(np.float64) / 255.0
        alpha.flags.writeable = False
        color = tuple(int(c) for c in frozen[0, 0, :3])
        return cls(name=name, margin=int(margin), overlay_color=color, pixels=frozen, alpha=alpha)

    @classmethod
    def from_luminance(
        cls,
        luminance: np.ndarray,
        *,
        name: str = "",
        margin: int = 0,
        overlay_color: Sequence[int] = DEFAULT_OVERLAY_COLOR,
    ) -> "AlphaTemplate":
        """Build a template from a 2D array of 0-255 opacity values."""
        opacity = np.asarray(luminance)
        if opacity.ndim != 2 or opacity.size == 0:
            raise ValueError(f"Luminance map must be a non-empty 2D array, got {opacity.shape}.")
        color = _validate_color(overlay_color)
        pixels = np.empty(opacity.shape + (4,), dtype=np.uint8)
        pixels[:, :, :3] = color
        pixels[:, :, 3] = np.clip(opacity, 0, 255).astype(np.uint8)
        return cls.from_pixels(pixels, name=name, margin=margin)


def _validate_color(color: Sequence[int]) -> Color:
    values = tuple(int(c) for c in color)
    if len(values) != 3 or any(c < 0 or c > 255 for c in values):
        raise ValueError(f"Overlay colour must be three values in [0, 255], got {color!r}.")
    return values  # type: ignore[return-value]


def _read_bitmap(raw_bitmap: RawBitmap) -> np.ndarray:
    if isinstance(raw_bitmap, np.ndarray):
        if raw_bitmap.size == 0:
            raise AssetLoadError("Template bitmap is empty.")
        return raw_bitmap
    if isinstance(raw_bitmap, (bytes, bytearray)):
        image = cv2.imdecode(np.frombuffer(raw_bitmap, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise AssetLoadError("Unable to decode template bitmap bytes.")
        return image

    path = Path(raw_bitmap)
    if not path.exists():
        raise AssetLoadError(f"Template bitmap not found: {path}")
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise AssetLoadError(f"Unable to decode template bitmap: {path}")
    return image


def preprocess_bitmap(raw_bitmap: RawBitmap) -> np.ndarray:
    """Return the rounded luminance of a template bitmap as a uint8 2D array."""
    image = _read_bitmap(raw_bitmap)
    try:
        rgba = utils.to_rgba(image)
    except ValueError as exc:
        raise AssetLoadError(str(exc)) from exc
    return utils.round_half_up(utils.luminance(rgba)).astype(np.uint8)


def load(
    raw_bitmap: RawBitmap,
    *,
    name: str = "",
    margin: int = 0,
    overlay_color: Sequence[int] = DEFAULT_OVERLAY_COLOR,
) -> AlphaTemplate:
    """Convert a grayscale-on-black bitmap into an :class:`AlphaTemplate`.

    Black becomes fully transparent and white fully opaque.

    Raises:
        AssetLoadError: If the bitmap cannot be read or decoded.
    """
    opacity = preprocess_bitmap(raw_bitmap)
    template = AlphaTemplate.from_luminance(
        opacity, name=name, margin=margin, overlay_color=overlay_color
    )
    logger.debug(
        "Prepared template %s (%sx%s, margin=%s)",
        name or "<unnamed>",
        template.width,
        template.height,
        template.margin,
    )
    return template


@dataclass(frozen=True)
class TemplateSpec:
    name: str
    path: Path
    margin: int


class AlphaTemplateStore(Mapping[str, AlphaTemplate]):
    """Read-only collection of templates, built once and shared by reference."""

    def __init__(self, templates: Optional[Mapping[str, AlphaTemplate]] = None) -> None:
        self._templates = MappingProxyType(dict(templates or {}))

    def __getitem__(self, name: str) -> AlphaTemplate:
        return self._templates[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def names(self) -> List[str]:
        return list(self._templates)

    @classmethod
    def load_all(
        cls,
        specs: Sequence[TemplateSpec],
        *,
        overlay_color: Sequence[int] = DEFAULT_OVERLAY_COLOR,
    ) -> "AlphaTemplateStore":
        """Load every spec; sizes that fail to load are logged and left out."""
        templates: Dict[str, AlphaTemplate] = {}
        for spec in specs:
            try:
                templates[spec.name] = load(
                    spec.path, name=spec.name, margin=spec.margin, overlay_color=overlay_color
                )
            except AssetLoadError as exc:
                logger.error("Template %s unavailable: %s", spec.name, exc)
                continue
            logger.info(
                "Loaded template %s from %s (margin=%s)", spec.name, spec.path, spec.margin
            )
        return cls(templates)

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any], *, base_dir: Optional[PathLike] = None
    ) -> "AlphaTemplateStore":
        settings = dict(config.get("templates", {}))
        assets_dir = Path(settings.get("assets_dir", "assets"))
        if not assets_dir.is_absolute() and base_dir is not None:
            assets_dir = Path(base_dir) / assets_dir
        overlay_color = _validate_color(settings.get("overlay_color", DEFAULT_OVERLAY_COLOR))

        specs: List[TemplateSpec] = []
        for entry in settings.get("sizes", []) or []:
            if "name" not in entry or "path" not in entry:
                raise ValueError("Template entries require 'name' and 'path' fields.")
            margin = int(entry.get("margin", 0))
            if margin < 0:
                raise ValueError(f"Template {entry['name']} has a negative margin.")
            path = Path(entry["path"])
            specs.append(
                TemplateSpec(
                    name=str(entry["name"]),
                    path=path if path.is_absolute() else assets_dir / path,
                    margin=margin,
                )
            )
        return cls.load_all(specs, overlay_color=overlay_color)


__all__ = [
    "AlphaTemplate",
    "AlphaTemplateStore",
    "TemplateSpec",
    "DEFAULT_OVERLAY_COLOR",
    "load",
    "preprocess_bitmap",
]
