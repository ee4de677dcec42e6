"""Core processing package for reverse alpha watermark removal."""

from . import utils
from .batch_manager import BatchItem, BatchResult, BatchWatermarkProcessor
from .detector import DetectionResult, OverlayDetector
from .dispatcher import ErrorKind, ProcessingDispatcher, ProcessingOutcome
from .errors import AssetLoadError, NoTemplateAvailable, WatermarkRemoverError, WorkerError
from .remover import FileResult, WatermarkRemover
from .selector import SelectionRule, TemplateSelector
from .templates import AlphaTemplate, AlphaTemplateStore
from .unblender import AlphaUnblender

__all__ = [
    "AlphaTemplate",
    "AlphaTemplateStore",
    "TemplateSelector",
    "SelectionRule",
    "OverlayDetector",
    "DetectionResult",
    "AlphaUnblender",
    "ProcessingDispatcher",
    "ProcessingOutcome",
    "ErrorKind",
    "WatermarkRemover",
    "FileResult",
    "BatchWatermarkProcessor",
    "BatchItem",
    "BatchResult",
    "WatermarkRemoverError",
    "AssetLoadError",
    "NoTemplateAvailable",
    "WorkerError",
    "utils",
]
