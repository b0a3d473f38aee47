"""
HSV <-> RGB conversion on whole arrays.

Both functions take an ``xp`` array module (numpy or cupy) so the same code
runs on host and device arrays. Hue is normalized to [0, 1).
"""

import numpy as np


def rgb_to_hsv(rgb, xp=np):
    """
    Convert (..., 3) RGB in [0,1] to (..., 3) HSV with the six-sector formula.

    Hue is 0 for grays, saturation is 0 for black.
    """
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    max_c = xp.maximum(xp.maximum(r, g), b)
    min_c = xp.minimum(xp.minimum(r, g), b)
    delta = max_c - min_c

    has_chroma = delta > 0
    safe_delta = xp.where(has_chroma, delta, 1.0)

    hue_red = xp.mod((g - b) / safe_delta + 6.0, 6.0)
    hue_green = (b - r) / safe_delta + 2.0
    hue_blue = (r - g) / safe_delta + 4.0
    hue = xp.where(max_c == r, hue_red, xp.where(max_c == g, hue_green, hue_blue)) / 6.0
    hue = xp.where(has_chroma, hue, 0.0)

    lit = max_c > 0
    saturation = xp.where(lit, delta / xp.where(lit, max_c, 1.0), 0.0)

    return xp.stack([hue, saturation, max_c], axis=-1).astype(rgb.dtype, copy=False)


def hsv_to_rgb(hsv, xp=np):
    """Convert (..., 3) HSV back to RGB with the standard sector formula."""
    h, s, v = hsv[..., 0], hsv[..., 1], hsv[..., 2]
    h6 = h * 6.0
    sector_f = xp.floor(h6)
    f = h6 - sector_f
    sector = xp.mod(sector_f.astype(xp.int32), 6)

    p = v * (1.0 - s)
    q = v * (1.0 - s * f)
    t = v * (1.0 - s * (1.0 - f))

    conditions = [sector == i for i in range(6)]
    r = xp.select(conditions, [v, q, p, p, t, v])
    g = xp.select(conditions, [t, v, v, q, p, p])
    b = xp.select(conditions, [p, p, t, v, v, q])

    return xp.stack([r, g, b], axis=-1).astype(hsv.dtype, copy=False)
