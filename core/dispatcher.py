"""Route buffers through detection and unblending on a chosen execution strategy."""

from __future__ import annotations

import abc
import enum
import logging
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np

from . import worker
from .detector import DetectionResult
from .errors import WorkerError
from .templates import AlphaTemplate
from .worker import MessageHandler

logger = logging.getLogger(__name__)

STRATEGY_MODES = ("auto", "offloaded", "direct")


class ErrorKind(str, enum.Enum):
    NO_TEMPLATE = "no_template"
    WORKER_FAILURE = "worker_failure"


@dataclass(eq=False)
class ProcessingOutcome:
    succeeded: bool
    overlay_detected: bool
    buffer: np.ndarray
    error_kind: Optional[ErrorKind] = None
    detection: Optional[DetectionResult] = None
    template_name: Optional[str] = None


class ExecutionStrategy(abc.ABC):
    """Delivers a request to the message handler and returns a future response."""

    name = "abstract"

    def __init__(self, handler: MessageHandler) -> None:
        self.handler = handler

    @abc.abstractmethod
    def post(self, message: worker.Message) -> "Future[worker.Message]":
        raise NotImplementedError

    def close(self) -> None:
        pass


class DirectStrategy(ExecutionStrategy):
    """Handle requests on the caller's thread; the future is already resolved."""

    name = "direct"

    def post(self, message: worker.Message) -> "Future[worker.Message]":
        future: "Future[worker.Message]" = Future()
        try:
            future.set_result(self.handler.handle(message))
        except Exception as exc:
            future.set_exception(exc)
        return future


class OffloadedStrategy(ExecutionStrategy):
    """Handle requests on a single background worker thread, in FIFO order."""

    name = "offloaded"

    def __init__(self, handler: MessageHandler) -> None:
        super().__init__(handler)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="overlay-worker")

    def post(self, message: worker.Message) -> "Future[worker.Message]":
        return self._executor.submit(self.handler.handle, message)

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def threads_supported() -> bool:
    # Emscripten and WASI builds of CPython cannot start threads.
    return sys.platform not in {"emscripten", "wasi"}


def select_strategy(mode: str, handler: MessageHandler) -> ExecutionStrategy:
    """Pick the execution strategy once, at start-up."""
    if mode not in STRATEGY_MODES:
        raise ValueError(f"Unsupported dispatcher mode: {mode}")
    if mode == "direct" or (mode == "auto" and not threads_supported()):
        return DirectStrategy(handler)
    if mode == "offloaded" and not threads_supported():
        raise ValueError("Offloaded processing requires thread support on this platform.")
    return OffloadedStrategy(handler)


class ProcessingDispatcher:
    """Detect an overlay and, when present, unblend it.

    Both strategies run the same :class:`~core.worker.MessageHandler`, so the
    results are bit-identical; only the thread doing the work differs.
    Requests carry no timeout, a stalled worker stalls the caller.
    """

    def __init__(self, strategy: ExecutionStrategy) -> None:
        self.strategy = strategy
        logger.debug("Initialized ProcessingDispatcher (strategy=%s)", strategy.name)

    def __enter__(self) -> "ProcessingDispatcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.strategy.close()

    def _exchange(self, message: worker.Message, expected: str) -> worker.Message:
        try:
            response = self.strategy.post(message).result()
        except Exception as exc:
            raise WorkerError(f"Worker raised {type(exc).__name__}: {exc}") from exc
        kind = response.get("kind")
        if kind == worker.ERROR:
            raise WorkerError(response.get("error", "unknown worker error"))
        if kind != expected:
            raise WorkerError(f"Expected a {expected} response, received {kind!r}.")
        return response

    def detect(self, buffer: np.ndarray, template: AlphaTemplate) -> DetectionResult:
        response = self._exchange(
            worker.build_request(worker.DETECT, _prepare(buffer), template), worker.DETECT_RESULT
        )
        return DetectionResult(present=bool(response["present"]), **response["diagnostics"])

    def process(
        self, buffer: np.ndarray, template: AlphaTemplate, *, retain_input: bool = False
    ) -> ProcessingOutcome:
        """Run detection and, if positive, unblending on ``buffer``.

        With ``retain_input`` the buffer is cloned first and the caller's array
        stays untouched (e.g. for before/after comparison). Otherwise the
        buffer moves into the call and only ``outcome.buffer`` is valid
        afterwards.
        """
        working = _prepare(buffer, clone=retain_input)
        try:
            detection = self.detect(working, template)
            if not detection.present:
                return ProcessingOutcome(
                    succeeded=True,
                    overlay_detected=False,
                    buffer=working,
                    detection=detection,
                    template_name=template.name,
                )
            response = self._exchange(
                worker.build_request(worker.PROCESS, working, template), worker.PROCESS_RESULT
            )
        except WorkerError as exc:
            logger.error("Processing with template %s failed: %s", template.name, exc)
            return ProcessingOutcome(
                succeeded=False,
                overlay_detected=False,
                buffer=buffer,
                error_kind=ErrorKind.WORKER_FAILURE,
                template_name=template.name,
            )

        restored = np.asarray(response["image_pixels"], dtype=np.uint8).reshape(working.shape)
        return ProcessingOutcome(
            succeeded=True,
            overlay_detected=True,
            buffer=restored,
            detection=detection,
            template_name=template.name,
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProcessingDispatcher":
        settings = dict(config.get("dispatcher", {}))
        handler = MessageHandler.from_config(config)
        return cls(select_strategy(str(settings.get("mode", "auto")), handler))


def _prepare(buffer: np.ndarray, *, clone: bool = False) -> np.ndarray:
    if buffer is None or buffer.size == 0:
        raise ValueError("Cannot process an empty pixel buffer.")
    if buffer.ndim != 3 or buffer.shape[2] != 4 or buffer.dtype != np.uint8:
        raise ValueError(
            f"Expected a (height, width, 4) uint8 buffer, received {buffer.shape} {buffer.dtype}."
        )
    if clone or not buffer.flags.writeable:
        return np.array(buffer, copy=True, order="C")
    return np.ascontiguousarray(buffer)


__all__ = [
    "ErrorKind",
    "ProcessingOutcome",
    "ExecutionStrategy",
    "DirectStrategy",
    "OffloadedStrategy",
    "ProcessingDispatcher",
    "select_strategy",
    "threads_supported",
]
