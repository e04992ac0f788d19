import numpy as np
from typing import Iterable, Sequence, Tuple, Union


def landmarks_to_array(landmarks: Iterable) -> np.ndarray:
    """Convert an iterable of landmarks into an Nx2 NumPy array.

    Accepts MediaPipe-style objects with `.x` and `.y` as well as plain
    `(x, y)` pairs, so synthetic hands can be used in tests.

    Args:
        landmarks: iterable of points (normalized 0..1)

    Returns:
        np.ndarray of shape (N, 2) dtype float with columns (x, y).
    """
    rows = []
    for lm in landmarks:
        if hasattr(lm, 'x') and hasattr(lm, 'y'):
            rows.append([lm.x, lm.y])
        else:
            rows.append([lm[0], lm[1]])
    return np.array(rows, dtype=float).reshape((-1, 2))


def normalized_to_pixels(
    norm_xy: Union[Tuple[float, float], np.ndarray], frame_shape: Tuple[int, ...]
) -> np.ndarray:
    """Map normalized coordinates (0..1) to pixel coordinates and clip to frame bounds.

    Accepts a single point `(x,y)` or an array of points shape `(N,2)`.

    Args:
        norm_xy: (2,) or (N,2) array-like with values in 0..1
        frame_shape: frame shape as returned by `frame.shape` (height, width, ...)

    Returns:
        np.ndarray of ints with same leading shape as `norm_xy`, mapped to pixels.
    """
    h, w = int(frame_shape[0]), int(frame_shape[1])
    arr = np.asarray(norm_xy, dtype=float)

    single = False
    if arr.ndim == 1:
        if arr.size != 2:
            raise ValueError("norm_xy must be shape (2,) or (N,2)")
        arr = arr.reshape((1, 2))
        single = True

    arr_px = np.empty_like(arr)
    arr_px[..., 0] = np.clip(arr[..., 0] * w, 0, w - 1)
    arr_px[..., 1] = np.clip(arr[..., 1] * h, 0, h - 1)

    arr_px = arr_px.astype(int)
    return arr_px[0] if single else arr_px


def disk_kernel(radius: int) -> np.ndarray:
    """Square (2r+1, 2r+1) float32 kernel with 1.0 where dx^2 + dy^2 <= r^2."""
    r = int(radius)
    dy, dx = np.mgrid[-r:r + 1, -r:r + 1]
    return (np.sqrt(dx * dx + dy * dy) <= r).astype(np.float32)


def vector_norm(v: Sequence[float]) -> float:
    return float(np.hypot(v[0], v[1]))


__all__ = [
    "landmarks_to_array",
    "normalized_to_pixels",
    "disk_kernel",
    "vector_norm",
]
