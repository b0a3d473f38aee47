"""Host-side RGBA float image, the unit of data exchanged with the accelerator."""

from typing import Union

import numpy as np

from ..utils.errors import InvalidImage


class ImageBuffer:
    """
    Rectangular grid of RGBA float32 samples, channels normalized to [0,1].

    ``pixels`` has shape (height, width, 4). The buffer owns its array; callers
    get copies or read-only views.
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise InvalidImage(
                f"ImageBuffer expects (H, W, 4) data, got {pixels.shape}",
                shape=pixels.shape,
            )
        self._pixels = np.array(pixels, dtype=np.float32, order="C")
        self._pixels.flags.writeable = False

    @classmethod
    def from_pixels(cls, data: Union[np.ndarray, "ImageBuffer"]) -> "ImageBuffer":
        """
        Build a buffer from a decoded image.

        Accepts (H, W), (H, W, 3) or (H, W, 4) arrays. uint8 data is scaled
        to [0,1]; float data is kept as is. Missing alpha becomes 1.0 and
        grayscale is replicated into RGB.
        """
        if isinstance(data, ImageBuffer):
            return data

        data = np.asarray(data)
        if data.dtype == np.uint8:
            values = data.astype(np.float32) / 255.0
        elif np.issubdtype(data.dtype, np.floating) or np.issubdtype(data.dtype, np.integer):
            values = data.astype(np.float32)
        else:
            raise InvalidImage(f"Unsupported pixel dtype {data.dtype}", shape=data.shape)

        if values.ndim == 2:
            rgba = np.ones(values.shape + (4,), dtype=np.float32)
            rgba[:, :, 0] = values
            rgba[:, :, 1] = values
            rgba[:, :, 2] = values
            values = rgba
        elif values.ndim == 3 and values.shape[2] == 3:
            rgba = np.ones(values.shape[:2] + (4,), dtype=np.float32)
            rgba[:, :, :3] = values
            values = rgba
        elif values.ndim != 3 or values.shape[2] != 4:
            raise InvalidImage(
                f"Expected (H, W), (H, W, 3) or (H, W, 4) pixels, got {data.shape}",
                shape=data.shape,
            )

        return cls(values)

    @classmethod
    def blank(cls, width: int, height: int) -> "ImageBuffer":
        """Transparent black buffer of the given size."""
        return cls(np.zeros((height, width, 4), dtype=np.float32))

    @property
    def pixels(self) -> np.ndarray:
        """Read-only (H, W, 4) float32 view."""
        return self._pixels

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def size(self):
        return (self.width, self.height)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def channel(self, index: int) -> np.ndarray:
        """Single channel (0=R, 1=G, 2=B, 3=A) as a read-only (H, W) view."""
        return self._pixels[:, :, index]

    def rgb(self) -> np.ndarray:
        return self._pixels[:, :, :3]

    def to_uint8(self, include_alpha: bool = False) -> np.ndarray:
        """Clamp to [0,1] and convert to 8-bit for display or encoding."""
        data = self._pixels if include_alpha else self._pixels[:, :, :3]
        return np.round(np.clip(data, 0.0, 1.0) * 255.0).astype(np.uint8)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageBuffer):
            return NotImplemented
        return self._pixels.shape == other._pixels.shape and np.array_equal(self._pixels, other._pixels)

    __hash__ = None

    def __repr__(self) -> str:
        return f"ImageBuffer({self.width}x{self.height})"
