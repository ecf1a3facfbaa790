'''
Cinematic color grade for webcam frames.

1) gamma-style contrast boost
2) desaturate in HSV space
3) warm up reds/greens, cool down blues
4) radial vignette

Every step is per pixel, so the whole frame is processed as numpy arrays.
The grade is not idempotent: always feed it the frame straight from the camera.
'''
from functools import lru_cache

import numpy as np

from .models import EnhancementSettings

DEFAULT_SETTINGS = EnhancementSettings()


def rgb_to_hsv(r, g, b):
    """RGB in [0, 255] -> (hue in degrees, saturation, value) with s, v in [0, 1].

    Accepts scalars or equally shaped arrays.
    """
    r = np.asarray(r, dtype=np.float64) / 255.0
    g = np.asarray(g, dtype=np.float64) / 255.0
    b = np.asarray(b, dtype=np.float64) / 255.0

    mx = np.maximum(np.maximum(r, g), b)
    mn = np.minimum(np.minimum(r, g), b)
    diff = mx - mn

    s = np.divide(diff, mx, out=np.zeros_like(mx), where=mx != 0)
    v = mx

    # branch order matters for ties: red first, then green
    safe_diff = np.where(diff == 0, 1.0, diff)
    h = np.where(
        mx == r,
        ((g - b) / safe_diff + np.where(g < b, 6.0, 0.0)) / 6.0,
        np.where(
            mx == g,
            ((b - r) / safe_diff + 2.0) / 6.0,
            ((r - g) / safe_diff + 4.0) / 6.0,
        ),
    )
    h = np.where(diff == 0, 0.0, h)
    return h * 360.0, s, v


def hsv_to_rgb(h, s, v):
    """Inverse of rgb_to_hsv, returning float channels in [0, 255]."""
    h = np.asarray(h, dtype=np.float64) / 360.0
    s = np.asarray(s, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)

    i = np.floor(h * 6.0)
    f = h * 6.0 - i
    p = v * (1.0 - s)
    q = v * (1.0 - f * s)
    t = v * (1.0 - (1.0 - f) * s)
    sector = np.mod(i, 6).astype(np.int64)

    conditions = [sector == k for k in range(6)]
    r = np.select(conditions, [v, q, p, p, t, v])
    g = np.select(conditions, [t, v, v, q, p, p])
    b = np.select(conditions, [p, p, t, v, v, q])
    return r * 255.0, g * 255.0, b * 255.0


def vignette_factor(x: float, y: float, width: int, height: int,
                    strength: float = DEFAULT_SETTINGS.vignette_strength) -> float:
    """Brightness multiplier for the pixel at column x, row y."""
    center_x = width / 2
    center_y = height / 2
    max_dist = np.sqrt(center_x * center_x + center_y * center_y)
    dist = np.sqrt((x - center_x) ** 2 + (y - center_y) ** 2)
    return float(1 - (dist / max_dist) * strength)


@lru_cache(maxsize=8)
def vignette_mask(width: int, height: int,
                  strength: float = DEFAULT_SETTINGS.vignette_strength) -> np.ndarray:
    """(height, width) array of vignette factors. Read-only, cached per size."""
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    center_x = width / 2
    center_y = height / 2
    max_dist = np.sqrt(center_x * center_x + center_y * center_y)
    dist = np.sqrt((xs - center_x) ** 2 + (ys - center_y) ** 2)
    mask = 1 - (dist / max_dist) * strength
    mask.setflags(write=False)
    return mask


def enhance_frame(frame: np.ndarray, settings: EnhancementSettings = DEFAULT_SETTINGS) -> np.ndarray:
    """Apply the color grade to an RGBA (or RGB) uint8 frame.

    Returns a new array of the same shape; alpha is copied through untouched.
    """
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise ValueError(f"expected an HxWx3 or HxWx4 frame, got shape {frame.shape}")
    height, width = frame.shape[:2]

    rgb = frame[..., :3].astype(np.float64) / 255.0
    rgb = np.power(rgb, settings.contrast_exponent) * 255.0

    h, s, v = rgb_to_hsv(rgb[..., 0], rgb[..., 1], rgb[..., 2])
    r, g, b = hsv_to_rgb(h, s * settings.saturation_scale, v)

    r = r * settings.warmth_r
    g = g * settings.warmth_g
    b = b * settings.cool_reduction_b

    mask = vignette_mask(width, height, settings.vignette_strength)
    graded = np.stack((r * mask, g * mask, b * mask), axis=-1)

    out = frame.copy()
    out[..., :3] = np.rint(np.clip(graded, 0, 255)).astype(np.uint8)
    return out
