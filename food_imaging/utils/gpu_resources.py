"""
GPU Resource Wrappers - per-dispatch image textures.

Each dispatch allocates its own input and output texture and destroys both
once the output has been read back. Nothing here is shared between calls.
"""

from typing import Any, Optional

import numpy as np

from .errors import BufferAllocationFailed, ComputationFailed, translate_errors
from .logger import get_logger

logger = get_logger(__name__)

BYTES_PER_PIXEL = 16  # rgba32float
ROW_ALIGNMENT = 256


class GPUTexture:
    """
    GPU texture wrapper for image data.

    Uses rgba32float format so kernels see the same normalized floats the
    host holds.
    """

    def __init__(self, device: Any, width: int, height: int, label: str = "", usage: int = 0) -> None:
        """
        Create a GPU texture.

        Args:
            device: wgpu device owning the texture
            width: Texture width in pixels
            height: Texture height in pixels
            label: Debug label
            usage: wgpu texture usage flags (auto-configured if 0)
        """
        import wgpu

        self.width = width
        self.height = height
        self.label = label
        self.format = "rgba32float"
        self._device = device

        # Default usage: can be sampled, stored to, and copied from/to
        if usage == 0:
            usage = (
                wgpu.TextureUsage.TEXTURE_BINDING |
                wgpu.TextureUsage.STORAGE_BINDING |
                wgpu.TextureUsage.COPY_DST |
                wgpu.TextureUsage.COPY_SRC
            )

        with translate_errors(BufferAllocationFailed, f"allocating {label or 'image'} texture",
                              size=(width, height)):
            self._texture = device.create_texture(
                label=label,
                size=(width, height, 1),
                format=self.format,
                usage=usage,
            )
            self._view = self._texture.create_view()

    @property
    def texture(self) -> Any:
        """Get the underlying wgpu texture."""
        return self._texture

    @property
    def view(self) -> Any:
        """Get the texture view for binding."""
        return self._view

    def upload(self, data: np.ndarray) -> None:
        """
        Upload an (H, W, 4) float32 array to the texture.
        """
        data = np.ascontiguousarray(data, dtype=np.float32)

        with translate_errors(BufferAllocationFailed, f"uploading {self.label or 'image'} texture",
                              size=(self.width, self.height)):
            self._device.queue.write_texture(
                {"texture": self._texture},
                data,
                {"bytes_per_row": data.shape[1] * BYTES_PER_PIXEL, "rows_per_image": data.shape[0]},
                (data.shape[1], data.shape[0], 1),
            )

    def readback(self) -> np.ndarray:
        """
        Download texture data from GPU to CPU.

        Mapping the staging buffer blocks until every previously submitted
        command on the queue has finished, so this doubles as the completion
        fence for the dispatch.

        Returns:
            float32 numpy array of shape (H, W, 4)
        """
        import wgpu

        # Calculate aligned bytes per row (must be multiple of 256)
        bytes_per_row = (self.width * BYTES_PER_PIXEL + ROW_ALIGNMENT - 1) & ~(ROW_ALIGNMENT - 1)
        buffer_size = bytes_per_row * self.height

        with translate_errors(BufferAllocationFailed, "allocating staging buffer",
                              size=(self.width, self.height)):
            staging = self._device.create_buffer(
                size=buffer_size,
                usage=wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.MAP_READ,
            )

        try:
            with translate_errors(ComputationFailed, "reading back output texture"):
                encoder = self._device.create_command_encoder()
                encoder.copy_texture_to_buffer(
                    {"texture": self._texture},
                    {"buffer": staging, "bytes_per_row": bytes_per_row},
                    (self.width, self.height, 1),
                )
                self._device.queue.submit([encoder.finish()])

                staging.map_sync(mode=wgpu.MapMode.READ)
                raw_data = staging.read_mapped()

                arr = np.frombuffer(raw_data, dtype=np.float32).reshape(
                    (self.height, bytes_per_row // 4)
                )
                # Drop row padding
                pixels = arr[:, :self.width * 4].reshape((self.height, self.width, 4))
                result = pixels.copy()
                staging.unmap()
        finally:
            staging.destroy()

        return result

    def destroy(self) -> None:
        """Release GPU resources."""
        texture: Optional[Any] = self._texture
        self._view = None
        self._texture = None
        if texture is not None:
            texture.destroy()
            logger.debug("Released %dx%d texture (%s)", self.width, self.height, self.label)
