"""
Hand landmark data contract.

The upstream detector (MediaPipe HandLandmarker or anything shaped like it)
produces, per video frame, zero or more hands of exactly 21 points in
normalized image coordinates. Inside this package a hand is a read-only
(21, 3) float array and a frame is a tuple of hands.
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from signstream.utils.math_utils import landmarks_to_array

NUM_LANDMARKS = 21

# MediaPipe Hand Landmark indices
LANDMARK_NAMES: Dict[str, int] = {
    'WRIST': 0,
    'THUMB_CMC': 1, 'THUMB_MCP': 2, 'THUMB_IP': 3, 'THUMB_TIP': 4,
    'INDEX_MCP': 5, 'INDEX_PIP': 6, 'INDEX_DIP': 7, 'INDEX_TIP': 8,
    'MIDDLE_MCP': 9, 'MIDDLE_PIP': 10, 'MIDDLE_DIP': 11, 'MIDDLE_TIP': 12,
    'RING_MCP': 13, 'RING_PIP': 14, 'RING_DIP': 15, 'RING_TIP': 16,
    'PINKY_MCP': 17, 'PINKY_PIP': 18, 'PINKY_DIP': 19, 'PINKY_TIP': 20,
}

WRIST = LANDMARK_NAMES['WRIST']
THUMB_IP = LANDMARK_NAMES['THUMB_IP']
THUMB_TIP = LANDMARK_NAMES['THUMB_TIP']
INDEX_MCP = LANDMARK_NAMES['INDEX_MCP']
INDEX_PIP = LANDMARK_NAMES['INDEX_PIP']
INDEX_DIP = LANDMARK_NAMES['INDEX_DIP']
INDEX_TIP = LANDMARK_NAMES['INDEX_TIP']
MIDDLE_MCP = LANDMARK_NAMES['MIDDLE_MCP']
MIDDLE_PIP = LANDMARK_NAMES['MIDDLE_PIP']
MIDDLE_TIP = LANDMARK_NAMES['MIDDLE_TIP']
RING_MCP = LANDMARK_NAMES['RING_MCP']
RING_PIP = LANDMARK_NAMES['RING_PIP']
RING_TIP = LANDMARK_NAMES['RING_TIP']
PINKY_MCP = LANDMARK_NAMES['PINKY_MCP']
PINKY_PIP = LANDMARK_NAMES['PINKY_PIP']
PINKY_TIP = LANDMARK_NAMES['PINKY_TIP']

# (mcp, pip, dip, tip) per finger; thumb uses (cmc, mcp, ip, tip)
FINGER_JOINTS: Dict[str, Tuple[int, int, int, int]] = {
    'thumb': (1, 2, 3, 4),
    'index': (5, 6, 7, 8),
    'middle': (9, 10, 11, 12),
    'ring': (13, 14, 15, 16),
    'pinky': (17, 18, 19, 20),
}

FINGERS = ('thumb', 'index', 'middle', 'ring', 'pinky')
LONG_FINGERS = ('index', 'middle', 'ring', 'pinky')

Hand = np.ndarray
Frame = Tuple[np.ndarray, ...]


class InvalidHandShape(ValueError):
    """A hand did not carry exactly 21 well-formed landmarks."""

    def __init__(self, message: str, count: int = -1):
        super().__init__(message)
        self.count = count


@dataclass(frozen=True)
class Landmark:
    """One tracked keypoint. x, y in [0, 1]; z is relative depth (negative = closer)."""
    x: float
    y: float
    z: float = 0.0


def is_empty_hand(landmarks: Any) -> bool:
    if landmarks is None:
        return True
    try:
        return len(landmarks) == 0
    except TypeError:
        return False


def as_hand(landmarks: Any) -> Hand:
    """
    Normalize a single hand into a read-only (21, 3) array.

    Accepts a sequence of landmark objects (anything with .x/.y[/.z]), a
    sequence of 2- or 3-tuples, or an ndarray of shape (21, 2) / (21, 3).

    Raises:
        InvalidHandShape: wrong landmark count or malformed points.
    """
    if isinstance(landmarks, np.ndarray) and landmarks.shape == (NUM_LANDMARKS, 3) \
            and landmarks.dtype == float and not landmarks.flags.writeable \
            and np.all(np.isfinite(landmarks)):
        # already normalized
        return landmarks

    # MediaPipe legacy results wrap points in `.landmark`
    points = getattr(landmarks, 'landmark', landmarks)

    try:
        if isinstance(points, np.ndarray):
            arr = np.asarray(points, dtype=float)
            if arr.ndim != 2 or arr.shape[1] not in (2, 3):
                raise InvalidHandShape(f"expected (21, 2) or (21, 3) array, got {arr.shape}",
                                       count=arr.shape[0] if arr.ndim else -1)
            if arr.shape[1] == 2:
                arr = np.hstack([arr, np.zeros((arr.shape[0], 1))])
        else:
            arr = landmarks_to_array(points)
    except (TypeError, ValueError) as e:
        if isinstance(e, InvalidHandShape):
            raise
        raise InvalidHandShape(f"malformed hand landmarks: {e}") from e

    if arr.shape[0] != NUM_LANDMARKS:
        raise InvalidHandShape(
            f"expected {NUM_LANDMARKS} landmarks, got {arr.shape[0]}", count=arr.shape[0])
    if not np.all(np.isfinite(arr)):
        raise InvalidHandShape("hand landmarks contain non-finite coordinates", count=arr.shape[0])

    arr = np.array(arr, dtype=float)
    arr.flags.writeable = False
    return arr


def as_frame(hands: Sequence[Any]) -> Frame:
    """Normalize every hand of a frame. None or empty -> ()."""
    if hands is None:
        return ()
    return tuple(as_hand(h) for h in hands)
