import pytest
import numpy as np

from food_imaging.processing.image_buffer import ImageBuffer
from food_imaging.processing.pipeline import KernelPipeline
from food_imaging.services.analysis_service import FoodImageAnalyzer


@pytest.fixture
def solid_red():
    """4x4 opaque pure red image."""
    pixels = np.zeros((4, 4, 4), dtype=np.float32)
    pixels[..., 0] = 1.0
    pixels[..., 3] = 1.0
    return ImageBuffer(pixels)


@pytest.fixture
def checkerboard():
    """2x2 white/black checkerboard, white on the diagonal."""
    pixels = np.zeros((2, 2, 4), dtype=np.float32)
    pixels[0, 0, :3] = 1.0
    pixels[1, 1, :3] = 1.0
    pixels[..., 3] = 1.0
    return ImageBuffer(pixels)


@pytest.fixture
def random_image():
    """37x23 random opaque image, deliberately not a multiple of the tile size."""
    rng = np.random.default_rng(42)
    pixels = rng.random((23, 37, 4), dtype=np.float32)
    pixels[..., 3] = 1.0
    return ImageBuffer(pixels)


@pytest.fixture
def sample_image_uint8():
    """Returns a simple 100x100 uint8 RGB image."""
    img = np.zeros((100, 100, 3), dtype=np.uint8)
    img[:50, :50] = [255, 0, 0]    # Red quadrant
    img[:50, 50:] = [0, 255, 0]    # Green quadrant
    img[50:, :50] = [0, 0, 255]    # Blue quadrant
    img[50:, 50:] = [255, 255, 0]  # Yellow quadrant
    return img


@pytest.fixture
def host_pipeline():
    """Pipeline on the NumPy reference backend, initialized."""
    pipeline = KernelPipeline(backends=("numpy",))
    pipeline.initialize()
    yield pipeline
    pipeline.destroy()


@pytest.fixture
def analyzer(host_pipeline):
    analyzer = FoodImageAnalyzer(host_pipeline, max_workers=2)
    yield analyzer
    analyzer.shutdown()
