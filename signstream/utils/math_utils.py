import numpy as np
from typing import Iterable, Sequence, Tuple


def landmarks_to_array(landmarks: Iterable) -> np.ndarray:
    """Convert an iterable of landmarks into an Nx3 NumPy array.

    Each item may be an object exposing `.x`, `.y` and optionally `.z`
    (MediaPipe NormalizedLandmark, our Landmark dataclass) or a plain
    2/3-sequence. Missing depth is filled with 0.0.

    Args:
        landmarks: iterable of points (normalized 0..1)

    Returns:
        np.ndarray of shape (N, 3) dtype float with columns (x, y, z).
    """
    rows = []
    for lm in landmarks:
        if hasattr(lm, 'x') and hasattr(lm, 'y'):
            rows.append((lm.x, lm.y, getattr(lm, 'z', 0.0) or 0.0))
        else:
            pt = tuple(lm)
            if len(pt) == 2:
                rows.append((pt[0], pt[1], 0.0))
            elif len(pt) == 3:
                rows.append(pt)
            else:
                raise ValueError(f"landmark must have 2 or 3 coordinates, got {len(pt)}")
    if not rows:
        return np.empty((0, 3), dtype=float)
    return np.array(rows, dtype=float)


def euclidean(a, b):
    """Planar Euclidean distance between points.

    Only the x and y columns take part; depth is ignored.

    - If `a` and `b` are 1-D points, returns a scalar.
    - If arrays of points, returns distances per-row.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    d = np.hypot(a[..., 0] - b[..., 0], a[..., 1] - b[..., 1])
    if np.ndim(d) == 0:
        return float(d)
    return d


def value_range(values: Sequence[float]) -> float:
    """max - min of a sequence, 0.0 when empty."""
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=float)
    return float(arr.max() - arr.min())


def count_reversals(values: Sequence[float], min_step: float = 0.005) -> int:
    """Count direction reversals along a 1-D trace.

    A step only counts when |delta| > min_step. A reversal is a counted step
    whose sign differs from the previous counted (nonzero) direction.
    """
    reversals = 0
    prev_dir = 0
    for delta in np.diff(np.asarray(values, dtype=float)):
        if abs(delta) <= min_step:
            continue
        direction = 1 if delta > 0 else -1
        if prev_dir != 0 and direction != prev_dir:
            reversals += 1
        prev_dir = direction
    return reversals


def sign_changes(signs: Iterable[int]) -> int:
    """Number of adjacent pairs with differing values."""
    arr = np.asarray(list(signs), dtype=int)
    if arr.size < 2:
        return 0
    return int(np.count_nonzero(arr[1:] != arr[:-1]))


def displacement(a, b) -> Tuple[float, float, float]:
    """(dx, dy, dz) from point a to point b."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    d = b - a
    dz = float(d[2]) if d.size > 2 else 0.0
    return float(d[0]), float(d[1]), dz


__all__ = [
    "landmarks_to_array",
    "euclidean",
    "value_range",
    "count_reversals",
    "sign_changes",
    "displacement",
]
