"""Reverse alpha blending over the template footprint."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import numpy as np

from . import utils
from .templates import AlphaTemplate

logger = logging.getLogger(__name__)

DEFAULT_MIN_ALPHA = 0.01
DEFAULT_MIN_INVERSE_ALPHA = 0.01


class AlphaUnblender:
    """Solve ``composite = original * (1 - a) + overlay * a`` for ``original``.

    Pixels with ``alpha < min_alpha`` are left alone, as are pixels whose
    ``1 - alpha`` falls below ``min_inverse_alpha``: the overlay saturated them
    and the original value cannot be recovered.
    """

    def __init__(
        self,
        min_alpha: float = DEFAULT_MIN_ALPHA,
        min_inverse_alpha: float = DEFAULT_MIN_INVERSE_ALPHA,
    ) -> None:
        if min_inverse_alpha <= 0:
            raise ValueError("min_inverse_alpha must be positive.")
        self.min_alpha = float(min_alpha)
        self.min_inverse_alpha = float(min_inverse_alpha)

    def unblend(self, buffer: np.ndarray, template: AlphaTemplate) -> np.ndarray:
        """Restore the footprint of ``buffer`` in place and return it."""
        if buffer is None or buffer.size == 0:
            raise ValueError("Cannot unblend an empty pixel buffer.")
        image_height, image_width = buffer.shape[:2]
        offset_x, offset_y = utils.footprint_offset(
            image_width, image_height, template.width, template.height, template.margin
        )
        if offset_x < 0 or offset_y < 0:
            logger.warning(
                "Template %s footprint lies outside the %sx%s image; leaving it unchanged.",
                template.name,
                image_width,
                image_height,
            )
            return buffer

        x_end = min(offset_x + template.width, image_width)
        y_end = min(offset_y + template.height, image_height)
        alpha = template.alpha[: y_end - offset_y, : x_end - offset_x]
        inverse = 1.0 - alpha
        recoverable = (alpha >= self.min_alpha) & (inverse >= self.min_inverse_alpha)
        if not recoverable.any():
            return buffer

        region = buffer[offset_y:y_end, offset_x:x_end, :3]
        composite = region[recoverable].astype(np.float64)
        a = alpha[recoverable][:, np.newaxis]
        overlay = np.asarray(template.overlay_color, dtype=np.float64)
        restored = (composite - overlay * a) / (1.0 - a)
        region[recoverable] = np.clip(utils.round_half_up(restored), 0, 255).astype(np.uint8)

        saturated = int(np.count_nonzero((alpha >= self.min_alpha) & ~recoverable))
        if saturated:
            logger.debug("%s saturated pixel(s) left unchanged under template %s", saturated, template.name)
        return buffer

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AlphaUnblender":
        settings = dict(config.get("unblend", {}))
        return cls(
            min_alpha=float(settings.get("min_alpha", DEFAULT_MIN_ALPHA)),
            min_inverse_alpha=float(settings.get("min_inverse_alpha", DEFAULT_MIN_INVERSE_ALPHA)),
        )


__all__ = ["AlphaUnblender"]
