"""Render synthetic overlay template bitmaps (grayscale sparkle on black)."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, Iterable, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# name -> (footprint size, margin)
REFERENCE_SIZES: Dict[str, Tuple[int, int]] = {"large": (96, 64), "small": (48, 32)}
DEFAULT_PEAK_OPACITY = 0.5
DEFAULT_FEATHER = 0.15


def render_sparkle(
    size: int, *, peak_opacity: float = DEFAULT_PEAK_OPACITY, feather: float = DEFAULT_FEATHER
) -> np.ndarray:
    """Return a ``size x size`` uint8 four-pointed star, brightest at the centre.

    The shape is the region ``sqrt(|u|) + sqrt(|v|) <= 1`` in coordinates
    normalised to [-1, 1], with a linear falloff of width ``feather``.
    """
    if size <= 0:
        raise ValueError("size must be a positive integer.")
    if not 0.0 < peak_opacity <= 1.0:
        raise ValueError("peak_opacity must be in (0, 1].")
    centre = (size - 1) / 2.0
    coords = (np.arange(size, dtype=np.float64) - centre) / (size / 2.0)
    u, v = np.meshgrid(coords, coords)
    distance = np.sqrt(np.abs(u)) + np.sqrt(np.abs(v))
    strength = np.clip((1.0 - distance) / feather, 0.0, 1.0)
    return np.floor(255.0 * peak_opacity * strength + 0.5).astype(np.uint8)


def write_template(path: Path, bitmap: np.ndarray) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(path), bitmap):
        raise IOError(f"Failed to write template bitmap at {path}")
    logger.info("Wrote template bitmap %s (%sx%s)", path, bitmap.shape[1], bitmap.shape[0])
    return path


def generate_templates(
    output_dir: Path,
    sizes: Iterable[int] = (96, 48),
    *,
    peak_opacity: float = DEFAULT_PEAK_OPACITY,
) -> Dict[int, Path]:
    """Write ``mask_<size>.png`` for every size into ``output_dir``."""
    outputs: Dict[int, Path] = {}
    for size in sizes:
        bitmap = render_sparkle(size, peak_opacity=peak_opacity)
        outputs[size] = write_template(output_dir / f"mask_{size}.png", bitmap)
    return outputs


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate synthetic overlay template bitmaps.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("config/assets"),
        help="Directory for the generated bitmaps.",
    )
    parser.add_argument(
        "--size",
        type=int,
        action="append",
        dest="sizes",
        help="Footprint size to render (repeatable, default: 96 and 48).",
    )
    parser.add_argument(
        "--peak-opacity",
        type=float,
        default=DEFAULT_PEAK_OPACITY,
        help="Opacity at the centre of the sparkle.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging verbosity level.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(levelname)s | %(message)s",
    )
    sizes = args.sizes or [size for size, _ in REFERENCE_SIZES.values()]
    logger.info("Generating template bitmaps into %s", args.output_dir)
    generate_templates(args.output_dir, sizes, peak_opacity=args.peak_opacity)


if __name__ == "__main__":
    main()
