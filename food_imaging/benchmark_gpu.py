"""
Kernel Benchmark Script - time each analysis family on the accelerator.

Compares the acquired accelerator against the NumPy reference backend so it
is easy to see whether acceleration pays off on a given machine.

Usage:
    python -m food_imaging.benchmark_gpu
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .config import settings
from .processing.pipeline import KernelPipeline
from .services.analysis_service import FoodImageAnalyzer
from .utils.errors import AnalysisError
from .utils.logger import get_logger, log_timing

logger = get_logger(__name__)


@dataclass(frozen=True)
class KernelBenchmarkResult:
    """Mean wall time in seconds of one call per analysis family."""
    enhancement_time: float
    analysis_time: float
    freshness_time: float
    edge_time: float
    total_time: float
    is_available: bool

    @classmethod
    def unavailable(cls) -> "KernelBenchmarkResult":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, False)


def create_test_food_image(width: int = 640, height: int = 480, seed: int = 42) -> np.ndarray:
    """
    Synthetic plate photo: a warm round "food" region with some browning on a
    pale background, plus noise for texture. Returns uint8 RGB.
    """
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:height, 0:width].astype(np.float32)

    image = np.empty((height, width, 3), dtype=np.float32)
    image[...] = (0.92, 0.91, 0.88)  # plate

    cx, cy = width / 2.0, height / 2.0
    radius = min(width, height) * 0.35
    food = (xx - cx) ** 2 + (yy - cy) ** 2 < radius ** 2
    image[food] = (0.85, 0.45, 0.15)

    browning = food & ((xx - cx * 1.2) ** 2 + (yy - cy * 0.9) ** 2 < (radius * 0.25) ** 2)
    image[browning] = (0.55, 0.38, 0.12)

    image += rng.normal(0.0, 0.03, size=image.shape).astype(np.float32)
    return (np.clip(image, 0.0, 1.0) * 255.0).astype(np.uint8)


def benchmark_function(
    func: Callable,
    args: Tuple,
    iterations: int = 5,
    warmup: int = 2
) -> Dict[str, float]:
    """
    Benchmark a function with warmup and multiple iterations.

    Returns dict with min, max, mean, and std times in milliseconds.
    """
    # Warmup
    for _ in range(warmup):
        func(*args)

    # Benchmark
    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        func(*args)
        end = time.perf_counter()
        times.append((end - start) * 1000)  # Convert to ms

    return {
        "min": min(times),
        "max": max(times),
        "mean": float(np.mean(times)),
        "std": float(np.std(times)),
    }


def benchmark_kernels(
    analyzer: FoodImageAnalyzer,
    image: Optional[np.ndarray] = None,
    iterations: int = 1,
    warmup: int = 0,
) -> KernelBenchmarkResult:
    """Time enhancement, food analysis, freshness and edge detection on ``image``."""
    try:
        analyzer.pipeline.initialize()
    except AnalysisError as e:
        logger.error("Kernel pipeline not available for benchmarking: %s", e)
        return KernelBenchmarkResult.unavailable()

    if image is None:
        image = create_test_food_image()

    start = time.perf_counter()
    timings = {
        name: benchmark_function(getattr(analyzer, name), (image,), iterations, warmup)["mean"] / 1000.0
        for name in analyzer.OPERATIONS
    }
    total = time.perf_counter() - start

    result = KernelBenchmarkResult(
        enhancement_time=timings["enhance"],
        analysis_time=timings["analyze_food"],
        freshness_time=timings["detect_freshness"],
        edge_time=timings["detect_edges"],
        total_time=total,
        is_available=True,
    )
    log_timing(logger, "Kernel Operations Benchmark", total, analyzer.pipeline.get_backend_name())
    return result


def _print_result(label: str, result: KernelBenchmarkResult) -> None:
    if not result.is_available:
        print(f"  {label:<10} Not available")
        return
    print(f"  {label:<10} enhance {result.enhancement_time * 1000:7.1f} ms | "
          f"analyze {result.analysis_time * 1000:7.1f} ms | "
          f"freshness {result.freshness_time * 1000:7.1f} ms | "
          f"edges {result.edge_time * 1000:7.1f} ms")


def run_benchmark():
    """Run the full benchmark suite."""
    print("=" * 70)
    print("Food Imaging Kernel Benchmark")
    print("=" * 70)

    defaults = settings.BENCHMARK_DEFAULTS
    accelerated = FoodImageAnalyzer(KernelPipeline())
    reference = FoodImageAnalyzer(KernelPipeline(backends=("numpy",)))

    try:
        accelerated.pipeline.initialize()
        info = accelerated.pipeline.context.get_info()
        print(f"\nBackend: {info['backend']}")
        print(f"Device:  {info['device_name']}")
    except AnalysisError as e:
        print(f"\nAccelerator: unavailable ({e})")

    sizes = [
        (defaults["width"] // 2, defaults["height"] // 2),
        (defaults["width"], defaults["height"]),
        (defaults["width"] * 2, defaults["height"] * 2),
    ]

    with accelerated, reference:
        for width, height in sizes:
            print(f"\nImage size: {width}x{height}")
            image = create_test_food_image(width, height)
            for label, analyzer in (("Reference", reference), ("Accel", accelerated)):
                result = benchmark_kernels(
                    analyzer, image,
                    iterations=defaults["iterations"],
                    warmup=defaults["warmup"],
                )
                _print_result(label, result)

    print("\n" + "=" * 70)
    print("Benchmark Complete")
    print("=" * 70)


if __name__ == "__main__":
    run_benchmark()
