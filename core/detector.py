"""Brightness test for the presence of a white overlay in the template footprint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import numpy as np

from . import utils
from .templates import AlphaTemplate

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 10.0
DEFAULT_MIN_ALPHA = 0.1
DEFAULT_REFERENCE_BRIGHTNESS = 128.0


@dataclass(frozen=True)
class DetectionResult:
    present: bool
    overlay_brightness: float
    reference_brightness: float
    diff: float

    @classmethod
    def from_brightness(
        cls, overlay_brightness: float, reference_brightness: float, threshold: float = DEFAULT_THRESHOLD
    ) -> "DetectionResult":
        diff = overlay_brightness - reference_brightness
        return cls(
            present=diff > threshold,
            overlay_brightness=float(overlay_brightness),
            reference_brightness=float(reference_brightness),
            diff=float(diff),
        )

    @classmethod
    def outside_image(cls) -> "DetectionResult":
        return cls(present=False, overlay_brightness=0.0, reference_brightness=0.0, diff=0.0)

    def diagnostics(self) -> Dict[str, float]:
        return {
            "overlay_brightness": self.overlay_brightness,
            "reference_brightness": self.reference_brightness,
            "diff": self.diff,
        }


def _check_buffer(buffer: np.ndarray) -> None:
    if buffer is None or buffer.size == 0:
        raise ValueError("Cannot inspect an empty pixel buffer.")
    if buffer.ndim != 3 or buffer.shape[2] < 3:
        raise ValueError(f"Expected an RGBA pixel buffer, received shape {buffer.shape}.")


class OverlayDetector:
    """Compare footprint brightness against the pixels just outside it.

    A white overlay brightens the region it covers, so the alpha-weighted
    luminance under the template should exceed that of a strip to the left
    and a strip above the footprint by more than ``threshold``.

    Args:
        threshold: Minimum brightness difference (strictly exceeded).
        min_alpha: Template pixels at or below this opacity are ignored.
        default_reference: Reference brightness used when no strip pixels exist.
        strip_size: Reference strip thickness; ``None`` uses the template's
            smaller dimension.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        min_alpha: float = DEFAULT_MIN_ALPHA,
        default_reference: float = DEFAULT_REFERENCE_BRIGHTNESS,
        strip_size: Optional[int] = None,
    ) -> None:
        if strip_size is not None and strip_size <= 0:
            raise ValueError("strip_size must be a positive integer.")
        self.threshold = float(threshold)
        self.min_alpha = float(min_alpha)
        self.default_reference = float(default_reference)
        self.strip_size = strip_size

    def detect(self, buffer: np.ndarray, template: AlphaTemplate) -> DetectionResult:
        _check_buffer(buffer)
        image_height, image_width = buffer.shape[:2]
        offset_x, offset_y = utils.footprint_offset(
            image_width, image_height, template.width, template.height, template.margin
        )
        if offset_x < 0 or offset_y < 0:
            logger.debug(
                "Template %s does not fit a %sx%s image; skipping detection.",
                template.name,
                image_width,
                image_height,
            )
            return DetectionResult.outside_image()

        overlay = self._overlay_brightness(buffer, template, offset_x, offset_y)
        reference = self._reference_brightness(buffer, template, offset_x, offset_y)
        result = DetectionResult.from_brightness(overlay, reference, self.threshold)
        logger.debug(
            "Detection for template %s: overlay=%.1f reference=%.1f diff=%.1f present=%s",
            template.name,
            result.overlay_brightness,
            result.reference_brightness,
            result.diff,
            result.present,
        )
        return result

    def _overlay_brightness(
        self, buffer: np.ndarray, template: AlphaTemplate, offset_x: int, offset_y: int
    ) -> float:
        image_height, image_width = buffer.shape[:2]
        x_end = min(offset_x + template.width, image_width)
        y_end = min(offset_y + template.height, image_height)
        region = buffer[offset_y:y_end, offset_x:x_end]
        alpha = template.alpha[: y_end - offset_y, : x_end - offset_x]

        covered = alpha > self.min_alpha
        weights = alpha[covered]
        total_weight = float(weights.sum())
        if total_weight <= 0:
            return 0.0
        return float((utils.luminance(region)[covered] * weights).sum() / total_weight)

    def _reference_brightness(
        self, buffer: np.ndarray, template: AlphaTemplate, offset_x: int, offset_y: int
    ) -> float:
        image_height, image_width = buffer.shape[:2]
        size = self.strip_size or min(template.width, template.height)
        x_end = min(offset_x + template.width, image_width)
        y_end = min(offset_y + template.height, image_height)

        left = buffer[offset_y:y_end, max(0, offset_x - size):offset_x]
        above = buffer[max(0, offset_y - size):offset_y, offset_x:x_end]
        count = left.shape[0] * left.shape[1] + above.shape[0] * above.shape[1]
        if count == 0:
            return self.default_reference
        total = utils.luminance(left).sum() + utils.luminance(above).sum()
        return float(total / count)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "OverlayDetector":
        settings = dict(config.get("detection", {}))
        strip_size = settings.get("strip_size")
        return cls(
            threshold=float(settings.get("threshold", DEFAULT_THRESHOLD)),
            min_alpha=float(settings.get("min_alpha", DEFAULT_MIN_ALPHA)),
            default_reference=float(settings.get("default_reference", DEFAULT_REFERENCE_BRIGHTNESS)),
            strip_size=int(strip_size) if strip_size is not None else None,
        )


__all__ = ["DetectionResult", "OverlayDetector"]
