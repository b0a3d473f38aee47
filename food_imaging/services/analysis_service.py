from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Union

import numpy as np

from food_imaging.config import settings
from ..processing.extractor import ResultExtractor
from ..processing.image_buffer import ImageBuffer
from ..processing.kernels import Kernel
from ..processing.pipeline import KernelPipeline
from ..processing.results import AdvancedFoodAnalysis, EdgeMap, FreshnessAnalysis
from ..utils.errors import AnalysisCancelled
from ..utils.logger import get_logger, log_timing

logger = get_logger(__name__)

PixelsLike = Union[np.ndarray, ImageBuffer]
CompletionCallback = Callable[[Optional[Any], Optional[BaseException]], None]
Deliver = Callable[[Callable[[], None]], None]


class CancellationToken:
    """Cooperative cancel flag, checked before each dispatch of a request."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str) -> None:
        if self._event.is_set():
            raise AnalysisCancelled(f"{operation} cancelled before dispatch")


class FoodImageAnalyzer:
    """
    Facade over the kernel pipeline and the result extractor.

    The ``enhance``/``analyze_food``/``detect_freshness``/``detect_edges``
    methods block the calling thread. ``submit`` runs any of them on a worker
    thread and returns a Future; an optional callback receives
    ``(result, None)`` or ``(None, error)`` and is handed to ``deliver`` so
    the caller can marshal it onto its own thread.
    """

    OPERATIONS = ("enhance", "analyze_food", "detect_freshness", "detect_edges")

    def __init__(
        self,
        pipeline: KernelPipeline,
        extractor: Optional[ResultExtractor] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self._pipeline = pipeline
        self._extractor = extractor or ResultExtractor()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.ANALYSIS_WORKERS,
            thread_name_prefix="food-analysis",
        )

    @property
    def pipeline(self) -> KernelPipeline:
        return self._pipeline

    def _dispatch(self, kernel: Kernel, image: ImageBuffer,
                  token: Optional[CancellationToken]) -> ImageBuffer:
        if token is not None:
            token.raise_if_cancelled(kernel.value)
        return self._pipeline.dispatch(kernel, image)

    # =========================================================================
    # Blocking API
    # =========================================================================

    def enhance(self, pixels: PixelsLike,
                token: Optional[CancellationToken] = None) -> ImageBuffer:
        image = ImageBuffer.from_pixels(pixels)
        output = self._dispatch(Kernel.ENHANCEMENT, image, token)
        return self._extractor.enhanced_image(output)

    def analyze_food(self, pixels: PixelsLike,
                     token: Optional[CancellationToken] = None) -> AdvancedFoodAnalysis:
        start = time.perf_counter()
        image = ImageBuffer.from_pixels(pixels)
        nutrition = self._dispatch(Kernel.NUTRITION, image, token)
        freshness = self._dispatch(Kernel.FRESHNESS, image, token)
        elapsed = time.perf_counter() - start
        log_timing(logger, "Advanced Food Analysis", elapsed)
        return self._extractor.food_analysis(image, nutrition, freshness, elapsed)

    def detect_freshness(self, pixels: PixelsLike,
                         token: Optional[CancellationToken] = None) -> FreshnessAnalysis:
        image = ImageBuffer.from_pixels(pixels)
        output = self._dispatch(Kernel.FRESHNESS, image, token)
        return self._extractor.freshness(output)

    def detect_edges(self, pixels: PixelsLike,
                     token: Optional[CancellationToken] = None) -> EdgeMap:
        image = ImageBuffer.from_pixels(pixels)
        output = self._dispatch(Kernel.EDGE_DETECTION, image, token)
        return self._extractor.edge_map(output)

    # =========================================================================
    # Async API
    # =========================================================================

    def submit(
        self,
        operation: str,
        pixels: PixelsLike,
        callback: Optional[CompletionCallback] = None,
        token: Optional[CancellationToken] = None,
        deliver: Optional[Deliver] = None,
    ) -> Future:
        """
        Run ``operation`` on a worker thread.

        Args:
            operation: one of ``OPERATIONS``
            pixels: decoded image
            callback: called with ``(result, error)`` once the work is done
            token: cancellation flag checked before each dispatch
            deliver: receives a zero-argument function that invokes the
                callback; defaults to calling it on the worker thread
        """
        if operation not in self.OPERATIONS:
            raise ValueError(f"Unknown operation '{operation}'.")

        future = self._executor.submit(getattr(self, operation), pixels, token)

        if callback is not None:
            def _on_done(done: Future) -> None:
                if done.cancelled():
                    result, error = None, AnalysisCancelled(f"{operation} cancelled")
                else:
                    error = done.exception()
                    result = None if error is not None else done.result()
                    if error is not None:
                        logger.error("%s failed: %s", operation, error)

                def _invoke() -> None:
                    callback(result, error)

                if deliver is not None:
                    deliver(_invoke)
                else:
                    _invoke()

            future.add_done_callback(_on_done)

        return future

    # =========================================================================
    # Resource Management
    # =========================================================================

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "FoodImageAnalyzer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
