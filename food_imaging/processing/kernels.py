"""
Array implementations of the four analysis kernels.

These mirror the WGSL kernels in ``utils/shaders`` one to one and are used by
the CuPy and NumPy backends. Every kernel takes an edge-padded input
(``pad_edges``) of shape (H+2, W+2, 4) and returns an (H, W, 4) float32
output, so each output pixel only ever sees the clamped 3x3 neighborhood of
its own input pixel.
"""

from enum import Enum
from typing import Callable, Dict

import numpy as np

from .color import hsv_to_rgb, rgb_to_hsv


class Kernel(Enum):
    """The analysis kernels. Values are the WGSL file names."""
    ENHANCEMENT = "food_enhancement"
    NUTRITION = "nutrition_analysis"
    FRESHNESS = "freshness_detection"
    EDGE_DETECTION = "edge_detection"


# Enhancement
WARM_HUE_RANGE = (0.0, 0.167)
GREEN_HUE_RANGE = (0.25, 0.417)
WARM_BOOST = (1.15, 1.05)    # (saturation, value)
GREEN_BOOST = (1.10, 1.02)
BOOST_WEIGHT = 0.7
SHARPEN_WEIGHT = 0.3
SHARPEN_WEIGHTS = np.array([
    [0.0, -0.5, 0.0],
    [-0.5, 3.0, -0.5],
    [0.0, -0.5, 0.0],
], dtype=np.float32)

# Edge detection
SOBEL_X = np.array([
    [-1.0, 0.0, 1.0],
    [-2.0, 0.0, 2.0],
    [-1.0, 0.0, 1.0],
], dtype=np.float32)
SOBEL_Y = np.array([
    [-1.0, -2.0, -1.0],
    [0.0, 0.0, 0.0],
    [1.0, 2.0, 1.0],
], dtype=np.float32)


def pad_edges(pixels, xp=np):
    """Clamp samples to [0,1] (NaN reads as 0) and replicate the border by one pixel."""
    finite = xp.nan_to_num(xp.asarray(pixels, dtype=xp.float32), nan=0.0, posinf=1.0, neginf=0.0)
    clamped = xp.clip(finite, 0.0, 1.0)
    return xp.pad(clamped, ((1, 1), (1, 1), (0, 0)), mode="edge")


def _inner_shape(padded):
    return padded.shape[0] - 2, padded.shape[1] - 2


def _neighbor(padded, dx: int, dy: int):
    """View of the padded input shifted by (dx, dy), aligned with the output."""
    h, w = _inner_shape(padded)
    return padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]


def _convolve3x3(padded, weights, channels=slice(0, 3)):
    acc = None
    for row in range(3):
        for col in range(3):
            weight = float(weights[row, col])
            if weight == 0.0:
                continue
            term = _neighbor(padded, col - 1, row - 1)[..., channels] * weight
            acc = term if acc is None else acc + term
    return acc


def _in_range(values, bounds):
    low, high = bounds
    return (values >= low) & (values <= high)


def enhancement_kernel(padded, xp=np):
    center = _neighbor(padded, 0, 0)
    hsv = rgb_to_hsv(center[..., :3], xp)
    hue, sat, val = hsv[..., 0], hsv[..., 1], hsv[..., 2]

    warm = _in_range(hue, WARM_HUE_RANGE)
    green = _in_range(hue, GREEN_HUE_RANGE) & ~warm
    sat = xp.where(warm, xp.minimum(sat * WARM_BOOST[0], 1.0),
                   xp.where(green, xp.minimum(sat * GREEN_BOOST[0], 1.0), sat))
    val = xp.where(warm, xp.minimum(val * WARM_BOOST[1], 1.0),
                   xp.where(green, xp.minimum(val * GREEN_BOOST[1], 1.0), val))
    boosted = hsv_to_rgb(xp.stack([hue, sat, val], axis=-1), xp)

    sharpened = _convolve3x3(padded, SHARPEN_WEIGHTS)

    rgb = xp.clip(boosted * BOOST_WEIGHT + sharpened * SHARPEN_WEIGHT, 0.0, 1.0)
    return xp.concatenate([rgb, center[..., 3:4]], axis=-1).astype(xp.float32)


def nutrition_kernel(padded, xp=np):
    center = _neighbor(padded, 0, 0)
    r, g, b = center[..., 0], center[..., 1], center[..., 2]
    max_c = xp.maximum(xp.maximum(r, g), b)
    min_c = xp.minimum(xp.minimum(r, g), b)

    greenness = xp.maximum(0.0, g - xp.maximum(r, b))
    warmness = xp.maximum(0.0, xp.maximum(r, g) - b)
    brownness = xp.maximum(0.0, 2.0 * min_c - max_c)
    lightness = (r + g + b) / 3.0

    vitamin = 0.8 * greenness + 0.6 * warmness
    protein = 0.9 * brownness + 0.3 * (1.0 - lightness)
    carb = 0.7 * lightness + 0.4 * brownness
    density = (vitamin + protein + carb) / 3.0

    return xp.stack([vitamin, protein, carb, density], axis=-1).astype(xp.float32)


def brown_spot_flag(rgb, xp=np):
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    spotted = (r > 0.4) & (g > 0.25) & (b < 0.3) & ((r - g) < 0.2) & ((g - b) > 0.1)
    return spotted.astype(xp.float32)


def patch_variance(padded, xp=np):
    """
    Mean squared RGB distance of the 3x3 patch from its mean color.

    This is the sum of the three per-channel variances, so a black/white
    checkerboard stores 3 * 20/81 = 60/81, not the per-channel 20/81.
    """
    samples = [_neighbor(padded, dx, dy)[..., :3] for dy in (-1, 0, 1) for dx in (-1, 0, 1)]
    mean = sum(samples) / 9.0
    return sum(xp.sum((s - mean) ** 2, axis=-1) for s in samples) / 9.0


def freshness_kernel(padded, xp=np):
    center = _neighbor(padded, 0, 0)[..., :3]
    brown = brown_spot_flag(center, xp)
    vibrancy = xp.max(center, axis=-1) - xp.min(center, axis=-1)
    variance = patch_variance(padded, xp)

    freshness = (
        0.4 * xp.clip(vibrancy, 0.0, 1.0)
        + 0.4 * (1.0 - brown)
        + 0.2 * xp.clip(variance * 5.0, 0.0, 1.0)
    )
    return xp.stack([brown, vibrancy, variance, freshness], axis=-1).astype(xp.float32)


def edge_kernel(padded, xp=np):
    gx = _convolve3x3(padded, SOBEL_X)
    gy = _convolve3x3(padded, SOBEL_Y)
    magnitude = xp.sqrt(gx * gx + gy * gy)
    strength = xp.mean(magnitude, axis=-1)
    alpha = xp.ones_like(strength)
    return xp.stack([strength, strength, strength, alpha], axis=-1).astype(xp.float32)


KERNEL_FUNCTIONS: Dict[Kernel, Callable] = {
    Kernel.ENHANCEMENT: enhancement_kernel,
    Kernel.NUTRITION: nutrition_kernel,
    Kernel.FRESHNESS: freshness_kernel,
    Kernel.EDGE_DETECTION: edge_kernel,
}


def run_kernel(kernel: Kernel, pixels, xp=np):
    """Convenience wrapper: pad ``pixels`` (H, W, 4) and run ``kernel`` on them."""
    return KERNEL_FUNCTIONS[kernel](pad_edges(pixels, xp), xp)
