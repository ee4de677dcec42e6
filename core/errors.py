"""Exception types raised by the watermark removal core."""

from __future__ import annotations


class WatermarkRemoverError(Exception):
    """Base class for watermark removal failures."""


class AssetLoadError(WatermarkRemoverError):
    """A template bitmap could not be read or decoded."""


class WorkerError(WatermarkRemoverError):
    """The processing worker replied with an error or an unexpected message."""


class NoTemplateAvailable(WatermarkRemoverError):
    """No loaded template matches the requested image size."""

    def __init__(self, width: int, height: int) -> None:
        super().__init__(f"No overlay template available for a {width}x{height} image.")
        self.width = width
        self.height = height


__all__ = ["WatermarkRemoverError", "AssetLoadError", "WorkerError", "NoTemplateAvailable"]
