"""Message protocol between the dispatcher and its processing worker.

Requests and responses are plain dicts so the worker needs nothing but the
message to rebuild the image buffer and template::

    {"kind": "detect" | "process", "image_pixels", "template_pixels",
     "template_width", "template_height", "margin", "image_width", "image_height",
     "template_name"}

``detect`` is answered with ``{"kind": "detect_result", "present", "diagnostics"}``,
``process`` with ``{"kind": "process_result", "image_pixels"}`` and anything
else with ``{"kind": "error", "error"}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .detector import OverlayDetector
from .templates import AlphaTemplate
from .unblender import AlphaUnblender

logger = logging.getLogger(__name__)

DETECT = "detect"
PROCESS = "process"
DETECT_RESULT = "detect_result"
PROCESS_RESULT = "process_result"
ERROR = "error"

Message = Dict[str, Any]


def build_request(kind: str, buffer: np.ndarray, template: AlphaTemplate) -> Message:
    """Pack a buffer and template into a request.

    ``image_pixels`` is a flat view of ``buffer``; a ``process`` request hands
    the buffer over to the worker.
    """
    height, width = buffer.shape[:2]
    return {
        "kind": kind,
        "image_pixels": buffer.reshape(-1),
        "template_pixels": template.pixels.reshape(-1),
        "template_width": template.width,
        "template_height": template.height,
        "margin": template.margin,
        "image_width": width,
        "image_height": height,
        "template_name": template.name,
    }


def _unpack_image(message: Mapping[str, Any]) -> np.ndarray:
    width = int(message["image_width"])
    height = int(message["image_height"])
    pixels = np.asarray(message["image_pixels"], dtype=np.uint8)
    if pixels.size != width * height * 4:
        raise ValueError(f"Image payload of {pixels.size} bytes does not match {width}x{height}.")
    return pixels.reshape(height, width, 4)


def _unpack_template(message: Mapping[str, Any]) -> AlphaTemplate:
    width = int(message["template_width"])
    height = int(message["template_height"])
    pixels = np.asarray(message["template_pixels"], dtype=np.uint8)
    if pixels.size != width * height * 4:
        raise ValueError(f"Template payload of {pixels.size} bytes does not match {width}x{height}.")
    return AlphaTemplate.from_pixels(
        pixels.reshape(height, width, 4),
        name=str(message.get("template_name", "")),
        margin=int(message["margin"]),
    )


class MessageHandler:
    """Answers dispatcher requests; runs on whichever thread the strategy picks."""

    def __init__(
        self,
        detector: Optional[OverlayDetector] = None,
        unblender: Optional[AlphaUnblender] = None,
    ) -> None:
        self.detector = detector or OverlayDetector()
        self.unblender = unblender or AlphaUnblender()

    def handle(self, message: Mapping[str, Any]) -> Message:
        kind = message.get("kind")
        try:
            if kind == DETECT:
                return self._detect(message)
            if kind == PROCESS:
                return self._process(message)
        except (KeyError, ValueError) as exc:
            logger.error("Rejected %s request: %s", kind, exc)
            return {"kind": ERROR, "error": f"Malformed {kind} request: {exc}"}
        return {"kind": ERROR, "error": f"Unknown message kind: {kind!r}"}

    def _detect(self, message: Mapping[str, Any]) -> Message:
        result = self.detector.detect(_unpack_image(message), _unpack_template(message))
        return {
            "kind": DETECT_RESULT,
            "present": result.present,
            "diagnostics": result.diagnostics(),
        }

    def _process(self, message: Mapping[str, Any]) -> Message:
        image = _unpack_image(message)
        restored = self.unblender.unblend(image, _unpack_template(message))
        return {"kind": PROCESS_RESULT, "image_pixels": restored.reshape(-1)}

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "MessageHandler":
        return cls(
            detector=OverlayDetector.from_config(config),
            unblender=AlphaUnblender.from_config(config),
        )


__all__ = [
    "DETECT",
    "PROCESS",
    "DETECT_RESULT",
    "PROCESS_RESULT",
    "ERROR",
    "MessageHandler",
    "build_request",
]
