"""
Kernel Pipeline - compiles the analysis kernels once and dispatches them.

The pipeline owns an AcceleratorContext and one compiled program per kernel.
Every ``dispatch`` call:
1. Validates the image (empty images never reach the accelerator)
2. Allocates an input and an output buffer of the image's size
3. Uploads, encodes one dispatch over a 16x16 tile grid and submits it
4. Blocks until the queue has finished and reads the output back
5. Releases both buffers

Calls are synchronous. Asynchrony belongs to the caller
(see ``services.analysis_service``).
"""

import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

import numpy as np

from food_imaging.config import settings
from .image_buffer import ImageBuffer
from .kernels import KERNEL_FUNCTIONS, Kernel, pad_edges
from ..utils.errors import (
    AcceleratorUnavailable,
    AnalysisError,
    BufferAllocationFailed,
    ComputationFailed,
    DispatchEncodingFailed,
    InvalidImage,
    KernelCompilationFailed,
    translate_errors,
)
from ..utils.gpu_device import AcceleratorContext
from ..utils.logger import get_logger, log_timing

logger = get_logger(__name__)


class PipelineState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPATCHING = "dispatching"
    FAILED = "failed"


@dataclass(frozen=True)
class TileGrid:
    """2-D grid of fixed-size thread tiles covering a width x height image."""
    width: int
    height: int
    tile_size: int = settings.TILE_SIZE

    @property
    def tiles_x(self) -> int:
        return math.ceil(self.width / self.tile_size)

    @property
    def tiles_y(self) -> int:
        return math.ceil(self.height / self.tile_size)

    @property
    def tile_count(self) -> int:
        return self.tiles_x * self.tiles_y

    @property
    def invocations(self) -> int:
        """Kernel invocations launched, including the masked overflow of edge tiles."""
        return self.tile_count * self.tile_size * self.tile_size

    def tiles(self) -> Iterator[Tuple[int, int, int, int]]:
        """Yield (x0, y0, x1, y1) for every tile, clipped to the image bounds."""
        for ty in range(self.tiles_y):
            y0 = ty * self.tile_size
            y1 = min(y0 + self.tile_size, self.height)
            for tx in range(self.tiles_x):
                x0 = tx * self.tile_size
                x1 = min(x0 + self.tile_size, self.width)
                yield x0, y0, x1, y1


class KernelPipeline:
    """
    Compiled analysis kernels bound to one accelerator context.

    For wgpu: each kernel is a WGSL compute pipeline.
    For CuPy / NumPy: each kernel is an array function bound to the module.
    """

    def __init__(
        self,
        context: Optional[AcceleratorContext] = None,
        backends: Optional[Iterable[str]] = None,
    ) -> None:
        self._context = context
        self._owns_context = False
        self._shaders: Optional[Any] = None
        self._backends = tuple(backends) if backends is not None else None
        self._programs: Dict[Kernel, Any] = {}
        self._state = PipelineState.UNINITIALIZED
        self._init_error: Optional[AnalysisError] = None

        self._init_lock = threading.Lock()
        self._active_lock = threading.Lock()
        self._active_dispatches = 0

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> PipelineState:
        if self._state is PipelineState.READY and self._active_dispatches:
            return PipelineState.DISPATCHING
        return self._state

    @property
    def context(self) -> Optional[AcceleratorContext]:
        return self._context

    @property
    def init_error(self) -> Optional[AnalysisError]:
        return self._init_error

    def is_available(self) -> bool:
        """True once initialized successfully."""
        return self._state is PipelineState.READY

    def get_backend_name(self) -> str:
        if self._context is None:
            return "none"
        return self._context.backend

    # =========================================================================
    # Initialization
    # =========================================================================

    def initialize(self) -> "KernelPipeline":
        """
        Acquire the accelerator (if none was given) and compile all kernels.

        Safe to call repeatedly. A failure is permanent: the same error is
        raised again on every later call and no retry is attempted.
        """
        with self._init_lock:
            if self._state is PipelineState.READY:
                return self
            if self._state is PipelineState.FAILED:
                raise self._unavailable_error()

            try:
                if self._context is None:
                    self._context = AcceleratorContext.acquire(self._backends)
                    self._owns_context = True
                programs = {kernel: self._compile(kernel) for kernel in Kernel}
            except AnalysisError as e:
                self._fail(e)
                raise
            except Exception as e:
                error = KernelCompilationFailed(
                    "Unexpected error while building kernel programs",
                    original_error=e,
                )
                self._fail(error)
                raise error from e

            self._programs = programs
            self._state = PipelineState.READY
            logger.info("Kernel pipeline ready: %d kernels on %s",
                        len(self._programs), self._context.device_name)
            return self

    def _fail(self, error: AnalysisError) -> None:
        self._init_error = error
        self._state = PipelineState.FAILED
        self._programs = {}
        logger.error("Kernel pipeline unavailable for this process: %s", error)

    def _unavailable_error(self) -> AcceleratorUnavailable:
        return AcceleratorUnavailable(
            "Kernel pipeline failed to initialize and stays disabled",
            original_error=self._init_error,
        )

    def _compile(self, kernel: Kernel) -> Any:
        if self._context.is_wgpu:
            return self._compile_wgpu(kernel)
        return self._compile_array(kernel)

    def _compile_wgpu(self, kernel: Kernel) -> Any:
        from ..utils.gpu_shaders import ShaderLoader

        device = self._context.wgpu_device
        if self._shaders is None:
            self._shaders = ShaderLoader(device)
        module = self._shaders.load(kernel.value)
        with translate_errors(KernelCompilationFailed, f"creating {kernel.value} pipeline",
                              kernel=kernel.value):
            pipeline = device.create_compute_pipeline(
                label=kernel.value,
                layout="auto",
                compute={"module": module, "entry_point": "main"},
            )
        logger.debug("Compiled compute pipeline: %s", kernel.value)
        return pipeline

    def _compile_array(self, kernel: Kernel) -> Any:
        xp = self._context.array_module
        func = KERNEL_FUNCTIONS[kernel]

        # Probe dispatch on a single pixel, like a shader compile it fails early
        with translate_errors(KernelCompilationFailed, f"probing {kernel.value} kernel",
                              kernel=kernel.value):
            probe = func(pad_edges(xp.zeros((1, 1, 4), dtype=xp.float32), xp), xp)
            if tuple(probe.shape) != (1, 1, 4):
                raise KernelCompilationFailed(
                    f"{kernel.value} probe returned shape {tuple(probe.shape)}",
                    kernel=kernel.value,
                )
        return func

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, kernel: Kernel, image: ImageBuffer) -> ImageBuffer:
        """
        Run ``kernel`` over ``image`` and return the output buffer.

        Raises:
            InvalidImage: empty or zero-dimension image (nothing is dispatched)
            AcceleratorUnavailable / KernelCompilationFailed: initialization failed
            BufferAllocationFailed, DispatchEncodingFailed, ComputationFailed:
                this call failed; later calls are unaffected
        """
        if not isinstance(image, ImageBuffer):
            image = ImageBuffer.from_pixels(image)
        if image.is_empty:
            raise InvalidImage(
                f"Cannot analyze an empty {image.width}x{image.height} image",
                shape=image.pixels.shape,
            )

        self.initialize()

        grid = TileGrid(image.width, image.height)
        start = time.perf_counter()
        with self._active_lock:
            self._active_dispatches += 1
        try:
            if self._context.is_wgpu:
                pixels = self._dispatch_wgpu(kernel, image, grid)
            else:
                pixels = self._dispatch_array(kernel, image, grid)
        finally:
            with self._active_lock:
                self._active_dispatches -= 1

        if pixels.shape != image.pixels.shape:
            raise ComputationFailed(
                f"{kernel.value} returned {pixels.shape[1]}x{pixels.shape[0]} "
                f"for a {image.width}x{image.height} input"
            )

        log_timing(logger, f"{kernel.value} ({image.width}x{image.height}, "
                           f"{grid.tile_count} tiles)",
                   time.perf_counter() - start, self._context.backend)
        return ImageBuffer(pixels)

    def _dispatch_wgpu(self, kernel: Kernel, image: ImageBuffer, grid: TileGrid) -> np.ndarray:
        """wgpu implementation - one compute pass, one readback."""
        from ..utils.gpu_resources import GPUTexture

        device = self._context.wgpu_device
        pipeline = self._programs[kernel]
        w, h = image.width, image.height

        tex_input = GPUTexture(device, w, h, label="input")
        tex_output = None
        try:
            tex_output = GPUTexture(device, w, h, label="output")
            tex_input.upload(image.pixels)

            with translate_errors(DispatchEncodingFailed, f"encoding {kernel.value} dispatch"):
                bind_group = device.create_bind_group(
                    layout=pipeline.get_bind_group_layout(0),
                    entries=[
                        {"binding": 0, "resource": tex_input.view},
                        {"binding": 1, "resource": tex_output.view},
                    ],
                )
                encoder = device.create_command_encoder()
                compute_pass = encoder.begin_compute_pass()
                compute_pass.set_pipeline(pipeline)
                compute_pass.set_bind_group(0, bind_group)
                compute_pass.dispatch_workgroups(grid.tiles_x, grid.tiles_y, 1)
                compute_pass.end()
                command_buffer = encoder.finish()

            with translate_errors(ComputationFailed, f"submitting {kernel.value} dispatch"):
                device.queue.submit([command_buffer])

            # Readback waits for the queue
            return tex_output.readback()
        finally:
            tex_input.destroy()
            if tex_output is not None:
                tex_output.destroy()

    def _dispatch_array(self, kernel: Kernel, image: ImageBuffer, grid: TileGrid) -> np.ndarray:
        """CuPy / NumPy implementation - the whole tile grid in one vectorized pass."""
        xp = self._context.array_module
        func = self._programs[kernel]
        logger.debug("%s: %dx%d tiles evaluated as one array pass",
                     kernel.value, grid.tiles_x, grid.tiles_y)

        with translate_errors(BufferAllocationFailed, "allocating input buffer",
                              size=(image.width, image.height)):
            padded = pad_edges(xp.asarray(image.pixels), xp)

        with translate_errors(ComputationFailed, f"running {kernel.value}"):
            output = func(padded, xp)

        with translate_errors(ComputationFailed, f"reading back {kernel.value} output"):
            return self._context.to_host(output)

    # =========================================================================
    # Resource Management
    # =========================================================================

    def destroy(self) -> None:
        """
        Drop compiled programs. The context is released only when this
        pipeline acquired it; a context passed in by the caller stays usable
        for the other pipelines sharing it.
        """
        self._programs = {}
        self._shaders = None
        if self._owns_context and self._context is not None:
            self._context.release()
            self._context = None
            self._owns_context = False
        if self._state is not PipelineState.FAILED:
            self._state = PipelineState.UNINITIALIZED
