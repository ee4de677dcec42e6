"""Image watermark removal by reverse alpha blending against known templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import numpy as np

from . import utils
from .detector import DetectionResult
from .dispatcher import ErrorKind, ProcessingDispatcher, ProcessingOutcome
from .errors import NoTemplateAvailable, WorkerError
from .selector import TemplateSelector
from .templates import AlphaTemplateStore

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_OUTPUT_SUFFIX = "_(watermark removed)"
DEFAULT_OUTPUT_FORMAT = ".png"


@dataclass
class FileResult:
    input_path: Path
    output_path: Path
    overlay_detected: bool
    template_name: Optional[str]
    width: int
    height: int


class WatermarkRemover:
    """High-level helper tying template selection to the processing dispatcher."""

    def __init__(
        self,
        store: AlphaTemplateStore,
        dispatcher: ProcessingDispatcher,
        *,
        selector: Optional[TemplateSelector] = None,
        output_suffix: str = DEFAULT_OUTPUT_SUFFIX,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
    ) -> None:
        if not output_format.startswith("."):
            output_format = f".{output_format}"
        self.store = store
        self.selector = selector or TemplateSelector(store)
        self.dispatcher = dispatcher
        self.output_suffix = output_suffix
        self.output_format = output_format.lower()
        logger.debug(
            "Initialized WatermarkRemover (templates=%s, strategy=%s)",
            ", ".join(store.names) or "none",
            dispatcher.strategy.name,
        )

    def __enter__(self) -> "WatermarkRemover":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.dispatcher.close()

    def detect(self, buffer: np.ndarray) -> Optional[DetectionResult]:
        """Detection diagnostics for ``buffer``; ``None`` when no template fits its size."""
        height, width = buffer.shape[:2]
        template = self.selector.select(width, height)
        if template is None:
            return None
        return self.dispatcher.detect(buffer, template)

    def remove_watermark(self, buffer: np.ndarray, *, retain_input: bool = False) -> ProcessingOutcome:
        """Detect and remove the overlay from an RGBA buffer."""
        if buffer is None or buffer.size == 0:
            raise ValueError("Cannot remove watermark from an empty image.")
        height, width = buffer.shape[:2]
        template = self.selector.select(width, height)
        if template is None:
            logger.error("No template available for %sx%s image", width, height)
            return ProcessingOutcome(
                succeeded=False,
                overlay_detected=False,
                buffer=buffer,
                error_kind=ErrorKind.NO_TEMPLATE,
            )
        return self.dispatcher.process(buffer, template, retain_input=retain_input)

    def default_output_path(self, input_path: PathLike) -> Path:
        input_path = Path(input_path)
        return input_path.with_name(f"{input_path.stem}{self.output_suffix}{self.output_format}")

    def process_file(
        self, input_path: PathLike, output_path: Optional[PathLike] = None
    ) -> FileResult:
        """Remove the overlay from an image file and store the result.

        The image is written even when no overlay was detected.

        Raises:
            NoTemplateAvailable: If no template is loaded for the image size.
            WorkerError: If the processing worker failed.
        """
        input_path = Path(input_path)
        target = Path(output_path) if output_path else self.default_output_path(input_path)
        image = utils.load_image(input_path)
        height, width = image.shape[:2]
        logger.info("Processing image %s (%sx%s)", input_path, width, height)

        outcome = self.remove_watermark(image)
        if outcome.error_kind is ErrorKind.NO_TEMPLATE:
            raise NoTemplateAvailable(width, height)
        if not outcome.succeeded:
            raise WorkerError(f"Failed to process {input_path}")

        if outcome.overlay_detected:
            logger.info("Removed overlay from %s using template %s", input_path, outcome.template_name)
        else:
            logger.info("No overlay detected in %s; writing image unchanged", input_path)
        utils.save_image(target, outcome.buffer)
        return FileResult(
            input_path=input_path,
            output_path=target,
            overlay_detected=outcome.overlay_detected,
            template_name=outcome.template_name,
            width=width,
            height=height,
        )

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any], *, base_dir: Optional[PathLike] = None
    ) -> "WatermarkRemover":
        store = AlphaTemplateStore.from_config(config, base_dir=base_dir)
        output = dict(config.get("output", {}))
        return cls(
            store,
            ProcessingDispatcher.from_config(config),
            selector=TemplateSelector.from_config(config, store),
            output_suffix=str(output.get("suffix", DEFAULT_OUTPUT_SUFFIX)),
            output_format=str(output.get("format", DEFAULT_OUTPUT_FORMAT)),
        )


__all__ = ["FileResult", "WatermarkRemover", "DEFAULT_OUTPUT_SUFFIX"]
