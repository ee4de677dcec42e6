"""Batch processing helpers for watermark removal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from .remover import WatermarkRemover

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class BatchItem:
    input_path: PathLike
    output_path: Optional[PathLike] = None


@dataclass
class BatchResult:
    success: bool
    input_path: Path
    output_path: Optional[Path] = None
    overlay_detected: bool = False
    error: Optional[str] = None


class BatchWatermarkProcessor:
    """Run watermark removal over several images, one at a time.

    Each image's detect and unblend cycle completes before the next image is
    loaded, so at most one decoded image is held in memory.
    """

    def __init__(
        self,
        remover: WatermarkRemover,
        *,
        config: Optional[Mapping[str, Any]] = None,
    ) -> None:
        config_map = dict(config or {})
        batch_settings = dict(config_map.get("batch", {}))
        self.halt_on_error = bool(batch_settings.get("halt_on_error", False))
        self.remover = remover

    def _execute_item(self, item: BatchItem) -> BatchResult:
        input_path = Path(item.input_path)
        logger.info("Batch processing %s", input_path)
        try:
            file_result = self.remover.process_file(input_path, item.output_path)
        except Exception as exc:  # pragma: no cover - error path
            logger.exception("Failed to process %s: %s", input_path, exc)
            return BatchResult(success=False, input_path=input_path, error=str(exc))
        return BatchResult(
            success=True,
            input_path=input_path,
            output_path=file_result.output_path,
            overlay_detected=file_result.overlay_detected,
        )

    def process(self, items: Iterable[BatchItem]) -> List[BatchResult]:
        results: List[BatchResult] = []
        for item in items:
            result = self._execute_item(item)
            results.append(result)
            if self.halt_on_error and not result.success:
                logger.warning("Halting batch after failure on %s", result.input_path)
                break
        return results


__all__ = ["BatchItem", "BatchResult", "BatchWatermarkProcessor"]
