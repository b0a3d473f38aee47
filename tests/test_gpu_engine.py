"""
Tests for the accelerator context, shader loading and backend parity.
"""

import numpy as np
import pytest

from food_imaging.processing.kernels import Kernel, run_kernel
from food_imaging.processing.pipeline import KernelPipeline
from food_imaging.utils.errors import AcceleratorUnavailable, KernelCompilationFailed


class TestAcceleratorContext:
    """Tests for AcceleratorContext acquisition."""

    def test_host_backend(self):
        from food_imaging.utils.gpu_device import AcceleratorContext

        context = AcceleratorContext.acquire(("numpy",))
        assert context.backend == "numpy"
        assert context.is_host
        assert not context.is_wgpu
        assert not context.is_cupy
        assert context.array_module is np
        assert context.queue is None

    def test_device_info(self):
        from food_imaging.utils.gpu_device import AcceleratorContext

        info = AcceleratorContext.acquire(("numpy",)).get_info()
        assert info["backend"] == "numpy"
        assert "device_name" in info
        assert info["is_host"] is True
        assert info["max_workgroup_invocations"] is None

    def test_unknown_backend(self):
        from food_imaging.utils.gpu_device import AcceleratorContext

        with pytest.raises(AcceleratorUnavailable) as exc_info:
            AcceleratorContext.acquire(("bogus",))
        assert exc_info.value.attempted == ("bogus",)
        assert "bogus" in str(exc_info.value)

    def test_no_backends(self):
        from food_imaging.utils.gpu_device import AcceleratorContext

        with pytest.raises(AcceleratorUnavailable):
            AcceleratorContext.acquire(())

    def test_priority_order(self):
        """Unknown entries are skipped, the first working backend wins."""
        from food_imaging.utils.gpu_device import AcceleratorContext

        context = AcceleratorContext.acquire(("bogus", "numpy"))
        assert context.backend == "numpy"

    def test_default_never_picks_host(self):
        """The default backend list only names accelerators."""
        from food_imaging.config import settings

        assert "numpy" not in settings.ACCELERATOR_BACKENDS

    def test_to_host(self):
        from food_imaging.utils.gpu_device import AcceleratorContext

        context = AcceleratorContext.acquire(("numpy",))
        data = np.ones((2, 2, 4), dtype=np.float32)
        np.testing.assert_array_equal(context.to_host(data), data)

    def test_release(self):
        from food_imaging.utils.gpu_device import AcceleratorContext

        context = AcceleratorContext.acquire(("numpy",))
        context.release()
        assert context.array_module is None


class _FakeModule:
    def __init__(self, device, label):
        self.device = device
        self.label = label


class _FakeDevice:
    def __init__(self, fail=False):
        self.fail = fail
        self.compiled = []

    def create_shader_module(self, label, code):
        if self.fail:
            raise RuntimeError("parse error")
        self.compiled.append(label)
        return _FakeModule(self, label)


class TestShaderLoader:
    """Tests for ShaderLoader."""

    @pytest.mark.parametrize("kernel", list(Kernel))
    def test_shader_files_exist(self, kernel):
        from food_imaging.utils.gpu_shaders import ShaderLoader

        assert ShaderLoader.shader_exists(kernel.value)

    @pytest.mark.parametrize("kernel", list(Kernel))
    def test_source_includes_common_bindings(self, kernel):
        from food_imaging.utils.gpu_shaders import ShaderLoader

        code = ShaderLoader.read_source(kernel.value)
        assert "fn load_clamped" in code
        assert "@workgroup_size(16, 16)" in code
        assert "fn main" in code

    def test_nonexistent_shader(self):
        from food_imaging.utils.gpu_shaders import ShaderLoader

        assert not ShaderLoader.shader_exists("nonexistent_shader_xyz")
        with pytest.raises(KernelCompilationFailed) as exc_info:
            ShaderLoader(_FakeDevice()).load("nonexistent_shader_xyz")
        assert exc_info.value.kernel == "nonexistent_shader_xyz"

    def test_modules_cached_per_loader(self):
        from food_imaging.utils.gpu_shaders import ShaderLoader

        device = _FakeDevice()
        loader = ShaderLoader(device)
        first = loader.load("edge_detection")
        second = loader.load("edge_detection")
        assert first is second
        assert device.compiled == ["edge_detection"]

        loader.clear_cache()
        loader.load("edge_detection")
        assert device.compiled == ["edge_detection", "edge_detection"]

    def test_modules_never_shared_between_devices(self):
        """Short-lived devices each get modules compiled for themselves."""
        import gc

        from food_imaging.utils.gpu_shaders import ShaderLoader

        for _ in range(50):
            device = _FakeDevice()
            module = ShaderLoader(device).load("freshness_detection")
            assert module.device is device
            assert device.compiled == ["freshness_detection"]
            del device, module
            gc.collect()

    def test_compile_failure(self):
        from food_imaging.utils.gpu_shaders import ShaderLoader

        with pytest.raises(KernelCompilationFailed) as exc_info:
            ShaderLoader(_FakeDevice(fail=True)).load("food_enhancement")
        assert exc_info.value.is_fatal
        assert isinstance(exc_info.value.original_error, RuntimeError)


@pytest.fixture(scope="module")
def wgpu_pipeline():
    """Pipeline on a real wgpu adapter; skipped when there is none."""
    pytest.importorskip("wgpu")
    pipeline = KernelPipeline(backends=("wgpu",))
    try:
        pipeline.initialize()
    except AcceleratorUnavailable as e:
        pytest.skip(f"No wgpu adapter: {e}")
    yield pipeline
    pipeline.destroy()


class TestWgpuParity:
    """The WGSL kernels agree with the array kernels."""

    @pytest.mark.parametrize("kernel", list(Kernel))
    def test_matches_reference(self, wgpu_pipeline, random_image, kernel):
        output = wgpu_pipeline.dispatch(kernel, random_image)
        expected = run_kernel(kernel, random_image.pixels)
        assert output.size == random_image.size
        np.testing.assert_allclose(output.pixels, expected, atol=1e-4)

    def test_single_pixel(self, wgpu_pipeline):
        pixels = np.array([[[0.8, 0.5, 0.3, 1.0]]], dtype=np.float32)
        output = wgpu_pipeline.dispatch(Kernel.FRESHNESS, pixels)
        np.testing.assert_allclose(
            output.pixels, run_kernel(Kernel.FRESHNESS, pixels), atol=1e-4
        )
