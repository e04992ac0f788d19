"""
Color classification for table-tennis balls.

Two pixel classifiers decide whether an RGB sample looks like ball material:
orange (HSV hue window) or white (bright and nearly achromatic). Each has a
scalar form for single samples and a vectorised form that classifies a whole
RGB frame at once; both forms use the same arithmetic so they always agree.
"""

import math

import numpy as np

# Orange window: hue in degrees, saturation and value in 0..1
ORANGE_HUE_MIN = 15
ORANGE_HUE_MAX = 45
ORANGE_MIN_SATURATION = 0.4
ORANGE_MIN_VALUE = 0.4

WHITE_MIN_AVERAGE = 200
WHITE_MAX_VARIANCE = 30


def rgb_to_hsv(r, g, b):
    """Return (hue, saturation, value) or None for achromatic samples.

    Hue is rounded half-up to whole degrees in [0, 360].
    """
    mx = max(r, g, b)
    mn = min(r, g, b)
    delta = mx - mn
    if delta == 0:
        return None

    if mx == r:
        hue = ((g - b) / delta) % 6
    elif mx == g:
        hue = (b - r) / delta + 2
    else:
        hue = (r - g) / delta + 4
    hue = math.floor(hue * 60 + 0.5)
    if hue < 0:
        hue += 360

    return hue, delta / mx, mx / 255


def is_orange(r, g, b) -> bool:
    hsv = rgb_to_hsv(r, g, b)
    if hsv is None:
        return False
    hue, saturation, value = hsv
    return (ORANGE_HUE_MIN <= hue <= ORANGE_HUE_MAX
            and saturation >= ORANGE_MIN_SATURATION
            and value >= ORANGE_MIN_VALUE)


def is_white(r, g, b) -> bool:
    avg = (r + g + b) / 3
    variance = abs(r - avg) + abs(g - avg) + abs(b - avg)
    return avg > WHITE_MIN_AVERAGE and variance < WHITE_MAX_VARIANCE


def _channels(rgb):
    arr = np.asarray(rgb, dtype=np.float64)
    if arr.shape[-1] != 3:
        raise ValueError(f"expected trailing RGB axis of size 3, got shape {arr.shape}")
    return arr[..., 0], arr[..., 1], arr[..., 2]


def orange_mask(rgb) -> np.ndarray:
    """Vectorised `is_orange` over an (..., 3) RGB array."""
    r, g, b = _channels(rgb)
    mx = np.maximum(np.maximum(r, g), b)
    mn = np.minimum(np.minimum(r, g), b)
    delta = mx - mn
    chromatic = delta != 0
    safe_delta = np.where(chromatic, delta, 1.0)

    hue = np.where(
        mx == r,
        np.mod((g - b) / safe_delta, 6),
        np.where(mx == g, (b - r) / safe_delta + 2, (r - g) / safe_delta + 4),
    )
    hue = np.floor(hue * 60 + 0.5)
    hue = np.where(hue < 0, hue + 360, hue)

    saturation = delta / np.where(mx == 0, 1.0, mx)
    value = mx / 255

    return (chromatic
            & (hue >= ORANGE_HUE_MIN) & (hue <= ORANGE_HUE_MAX)
            & (saturation >= ORANGE_MIN_SATURATION)
            & (value >= ORANGE_MIN_VALUE))


def white_mask(rgb) -> np.ndarray:
    """Vectorised `is_white` over an (..., 3) RGB array."""
    r, g, b = _channels(rgb)
    avg = (r + g + b) / 3
    variance = np.abs(r - avg) + np.abs(g - avg) + np.abs(b - avg)
    return (avg > WHITE_MIN_AVERAGE) & (variance < WHITE_MAX_VARIANCE)


def ball_color_mask(rgb) -> np.ndarray:
    """Pixels that are either orange or white."""
    return orange_mask(rgb) | white_mask(rgb)


__all__ = [
    'rgb_to_hsv',
    'is_orange',
    'is_white',
    'orange_mask',
    'white_mask',
    'ball_color_mask',
]
