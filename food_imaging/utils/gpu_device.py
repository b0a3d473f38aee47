"""
Accelerator Context - one compute device and its serial command queue.

The context is acquired once at startup and handed to every pipeline that
needs it. Supported backends:

1. wgpu (Vulkan/Metal/DX12) - runs the WGSL kernels
2. CuPy (CUDA/ROCm) - runs the array kernels on device memory
3. NumPy - host reference backend, only used when requested explicitly
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from food_imaging.config import settings
from .errors import AcceleratorUnavailable
from .logger import get_logger

logger = get_logger(__name__)

KNOWN_BACKENDS = ("wgpu", "cupy", "numpy")


class AcceleratorContext:
    """
    A compute device plus the queue all dispatches are submitted to.

    Use :meth:`acquire` to build one; the constructor only stores handles.
    """

    def __init__(
        self,
        backend: str,
        device_name: str,
        wgpu_adapter: Optional[Any] = None,
        wgpu_device: Optional[Any] = None,
        array_module: Optional[Any] = None,
    ) -> None:
        self.backend = backend  # "wgpu", "cupy-cuda", "cupy-rocm" or "numpy"
        self.device_name = device_name

        # wgpu-specific
        self._wgpu_adapter = wgpu_adapter
        self._wgpu_device = wgpu_device
        self._wgpu_limits: Dict[str, Any] = {}
        if wgpu_device is not None and hasattr(wgpu_device, "limits"):
            self._wgpu_limits = dict(wgpu_device.limits)

        # CuPy / NumPy
        self._array_module = array_module

    # =========================================================================
    # Acquisition
    # =========================================================================

    @classmethod
    def acquire(cls, backends: Optional[Iterable[str]] = None) -> "AcceleratorContext":
        """
        Acquire the first available backend from ``backends``.

        Args:
            backends: Backend names in priority order. Defaults to
                ``settings.ACCELERATOR_BACKENDS``.

        Raises:
            AcceleratorUnavailable: if none of the requested backends works.
        """
        requested: Tuple[str, ...] = tuple(
            backends if backends is not None else settings.ACCELERATOR_BACKENDS
        )
        failures: List[str] = []

        for name in requested:
            if name not in KNOWN_BACKENDS:
                failures.append(f"{name}: unknown backend")
                continue

            context, reason = getattr(cls, f"_try_{name}")()
            if context is not None:
                logger.info("Accelerator acquired: %s", context.device_name)
                return context
            failures.append(f"{name}: {reason}")

        message = "No compatible compute device"
        if failures:
            message += " (" + "; ".join(failures) + ")"
        logger.error(message)
        raise AcceleratorUnavailable(message, attempted=requested)

    @classmethod
    def _try_wgpu(cls) -> Tuple[Optional["AcceleratorContext"], str]:
        """Attempt to initialize wgpu backend."""
        try:
            import wgpu

            adapter = wgpu.gpu.request_adapter_sync(
                power_preference=settings.WGPU_POWER_PREFERENCE
            )
            if adapter is None:
                logger.debug("wgpu: No compatible GPU adapter found")
                return None, "no compatible adapter"

            device = adapter.request_device_sync()
            if device is None:
                logger.debug("wgpu: Failed to create device")
                return None, "device creation failed"

            # Parse backend from summary (e.g., "AMD Radeon... (Vulkan)")
            summary = str(adapter.summary)
            backend_name = "WebGPU"
            if "(" in summary:
                backend_name = summary.split("(")[-1].replace(")", "").strip()
            device_name = f"{summary.split('(')[0].strip()} ({backend_name})"

            return cls("wgpu", device_name, wgpu_adapter=adapter, wgpu_device=device), ""

        except ImportError:
            logger.debug("wgpu not installed")
            return None, "wgpu not installed"
        except Exception as e:
            logger.debug(f"wgpu initialization failed: {e}")
            return None, str(e)

    @classmethod
    def _try_cupy(cls) -> Tuple[Optional["AcceleratorContext"], str]:
        """Attempt to initialize CuPy backend."""
        try:
            import cupy as cp

            device_count = cp.cuda.runtime.getDeviceCount()
            if device_count == 0:
                logger.debug("CuPy available but no GPU devices found")
                return None, "no CUDA/ROCm device"

            device_props = cp.cuda.runtime.getDeviceProperties(0)
            device_name = device_props.get("name", b"Unknown GPU")
            if isinstance(device_name, bytes):
                device_name = device_name.decode("utf-8", errors="ignore")

            cupy_path = cp.__file__.lower() if cp.__file__ else ""
            if "rocm" in cupy_path or "hip" in cupy_path:
                backend_type, backend_label = "cupy-rocm", "ROCm"
            else:
                backend_type, backend_label = "cupy-cuda", "CUDA"

            # Test basic operation
            _ = cp.sum(cp.array([1, 2, 3]))

            return cls(backend_type, f"{device_name} ({backend_label})", array_module=cp), ""

        except ImportError:
            logger.debug("CuPy not installed")
            return None, "cupy not installed"
        except Exception as e:
            logger.debug(f"CuPy initialization failed: {e}")
            return None, str(e)

    @classmethod
    def _try_numpy(cls) -> Tuple[Optional["AcceleratorContext"], str]:
        return cls("numpy", "Host (NumPy reference)", array_module=np), ""

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_wgpu(self) -> bool:
        return self.backend == "wgpu"

    @property
    def is_cupy(self) -> bool:
        return self.backend in ("cupy-cuda", "cupy-rocm")

    @property
    def is_host(self) -> bool:
        return self.backend == "numpy"

    @property
    def wgpu_device(self) -> Optional[Any]:
        """Get the wgpu device (None if not using wgpu)."""
        return self._wgpu_device

    @property
    def queue(self) -> Optional[Any]:
        """The single serial command queue (wgpu only)."""
        return self._wgpu_device.queue if self._wgpu_device is not None else None

    @property
    def array_module(self) -> Optional[Any]:
        """cupy or numpy for the array backends, None for wgpu."""
        return self._array_module

    def to_host(self, array: Any) -> np.ndarray:
        """Copy an array-backend result to host memory, blocking until it is ready."""
        if self.is_cupy:
            return self._array_module.asnumpy(array)
        return np.asarray(array)

    def get_info(self) -> Dict[str, Any]:
        """Get accelerator information for display."""
        return {
            "backend": self.backend,
            "device_name": self.device_name,
            "is_wgpu": self.is_wgpu,
            "is_cupy": self.is_cupy,
            "is_host": self.is_host,
            "max_workgroup_invocations": self._wgpu_limits.get(
                "max_compute_invocations_per_workgroup"
            ),
        }

    def release(self) -> None:
        """Drop device handles. The context is unusable afterwards."""
        self._wgpu_adapter = None
        self._wgpu_device = None
        self._array_module = None
        logger.debug("Accelerator context released: %s", self.device_name)

    def __repr__(self) -> str:
        return f"AcceleratorContext(backend={self.backend!r}, device={self.device_name!r})"
