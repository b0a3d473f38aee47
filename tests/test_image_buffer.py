import numpy as np
import pytest

from food_imaging.processing.image_buffer import ImageBuffer
from food_imaging.utils.errors import InvalidImage


class TestFromPixels:
    """Tests for building buffers from decoded images."""

    def test_uint8_rgb_is_normalized(self, sample_image_uint8):
        """uint8 RGB becomes RGBA floats in [0,1] with opaque alpha."""
        buffer = ImageBuffer.from_pixels(sample_image_uint8)
        assert buffer.pixels.shape == (100, 100, 4)
        assert buffer.pixels.dtype == np.float32
        assert buffer.width == 100 and buffer.height == 100
        np.testing.assert_array_equal(buffer.pixels[0, 0], [1.0, 0.0, 0.0, 1.0])
        np.testing.assert_array_equal(buffer.channel(3), 1.0)

    def test_grayscale_is_replicated(self):
        gray = np.full((3, 5), 0.25, dtype=np.float32)
        buffer = ImageBuffer.from_pixels(gray)
        assert buffer.size == (5, 3)
        np.testing.assert_array_equal(buffer.rgb(), 0.25)

    def test_rgba_float_kept_unclipped(self):
        """Float data is stored as is; kernels clamp their samples."""
        data = np.full((2, 2, 4), 1.5, dtype=np.float64)
        buffer = ImageBuffer.from_pixels(data)
        assert buffer.pixels.dtype == np.float32
        np.testing.assert_array_equal(buffer.pixels, 1.5)

    def test_bad_channel_count(self):
        with pytest.raises(InvalidImage):
            ImageBuffer.from_pixels(np.zeros((4, 4, 2), dtype=np.float32))

    def test_bad_rank(self):
        with pytest.raises(InvalidImage):
            ImageBuffer.from_pixels(np.zeros((4,), dtype=np.float32))

    def test_empty_image_is_representable(self):
        """Zero-size images are rejected at dispatch, not at construction."""
        buffer = ImageBuffer.from_pixels(np.zeros((0, 0, 4), dtype=np.float32))
        assert buffer.is_empty

    def test_passthrough(self, solid_red):
        assert ImageBuffer.from_pixels(solid_red) is solid_red


class TestOwnership:
    """Buffers own their data."""

    def test_buffer_copies_input(self):
        data = np.zeros((2, 2, 4), dtype=np.float32)
        buffer = ImageBuffer(data)
        data[0, 0, 0] = 1.0
        assert buffer.pixels[0, 0, 0] == 0.0

    def test_pixels_are_read_only(self, solid_red):
        with pytest.raises(ValueError):
            solid_red.pixels[0, 0, 0] = 0.5

    def test_to_uint8(self):
        data = np.array([[[0.0, 0.5, 1.2, 1.0]]], dtype=np.float32)
        out = ImageBuffer(data).to_uint8()
        assert out.dtype == np.uint8
        np.testing.assert_array_equal(out[0, 0], [0, 128, 255])

    def test_equality(self, solid_red):
        assert solid_red == ImageBuffer(solid_red.pixels)
        assert solid_red != ImageBuffer.blank(4, 4)
