import logging
import numpy as np
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from signstream.detectors import labels
from signstream.detectors.landmarks import (
    Hand, as_hand, is_empty_hand, FINGER_JOINTS, LONG_FINGERS,
    WRIST, THUMB_IP, THUMB_TIP,
    INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP,
    MIDDLE_MCP, MIDDLE_PIP, MIDDLE_TIP,
    RING_PIP, PINKY_PIP,
)
from signstream.utils.math_utils import euclidean, displacement, sign_changes

logger = logging.getLogger(__name__)


# Letter disambiguation thresholds (normalized image units)
THUMB_TOUCH_DIST = 0.05        # T / N / M / S in the fist group
INDEX_HOOK_DIST = 0.08         # X
TIPS_TOGETHER_DIST = 0.03      # U
THUMB_ON_MIDDLE_DIST = 0.06    # K
THUMB_INDEX_TOUCH_DIST = 0.06  # F (secondary) and O
C_GAP_MIN = 0.05
C_GAP_MAX = 0.25


# Data Structures

@dataclass
class HandPose:
    """
    Per-frame geometry of a single hand.
    All spatial values are in normalized coordinates (0..1).
    """
    landmarks: np.ndarray       # shape (21, 3)
    orientation: str

    # {'thumb': bool, 'index': bool, ...}
    fingers_extended: Dict[str, bool] = field(default_factory=dict)

    # Distances between key points
    tip_distances: Dict[str, float] = field(default_factory=dict)

    @property
    def wrist(self) -> np.ndarray:
        return self.landmarks[WRIST]

    def extended_pattern(self) -> Tuple[bool, bool, bool, bool]:
        """(index, middle, ring, pinky) extension flags."""
        return tuple(self.fingers_extended[f] for f in LONG_FINGERS)


@dataclass
class GestureResult:
    """Result from a gesture detector."""
    detected: bool
    gesture_name: str
    confidence: float = 1.0
    metadata: Dict = field(default_factory=dict)


@dataclass
class MotionSample:
    """Wrist displacement between two consecutive classifications."""
    dx: float
    dy: float
    dz: float
    speed: float
    vertical_dir: int


def check_orientation(landmarks) -> str:
    """
    Coarse pointing direction of the index finger relative to the wrist.

    Returns one of UP, DOWN, SIDE, or NONE for empty input.
    """
    if is_empty_hand(landmarks):
        return labels.NONE
    hand = as_hand(landmarks)
    wrist = hand[WRIST]
    index_tip = hand[INDEX_TIP]

    dx = abs(index_tip[0] - wrist[0])
    dy = abs(index_tip[1] - wrist[1])

    if dx > dy:
        return labels.SIDE
    # Y increases downwards in image coords: tip above wrist means UP
    if index_tip[1] < wrist[1]:
        return labels.UP
    return labels.DOWN


def is_finger_extended(hand: Hand, finger_name: str) -> bool:
    """
    Geometric "straight finger" proxy.

    Long fingers: tip farther from the wrist than the PIP joint.
    Thumb: tip farther from the index MCP than the thumb IP joint.
    """
    if finger_name == 'thumb':
        return euclidean(hand[THUMB_TIP], hand[INDEX_MCP]) > euclidean(hand[THUMB_IP], hand[INDEX_MCP])

    if finger_name not in FINGER_JOINTS:
        return False
    _, pip_idx, _, tip_idx = FINGER_JOINTS[finger_name]
    wrist = hand[WRIST]
    return euclidean(hand[tip_idx], wrist) > euclidean(hand[pip_idx], wrist)


def fingers_extended(hand: Hand) -> Dict[str, bool]:
    return {name: is_finger_extended(hand, name) for name in FINGER_JOINTS}


def compute_hand_pose(landmarks) -> HandPose:
    hand = as_hand(landmarks)
    tip_distances = {
        'thumb_index': euclidean(hand[THUMB_TIP], hand[INDEX_TIP]),
        'thumb_middle': euclidean(hand[THUMB_TIP], hand[MIDDLE_TIP]),
        'index_middle': euclidean(hand[INDEX_TIP], hand[MIDDLE_TIP]),
    }
    return HandPose(
        landmarks=hand,
        orientation=check_orientation(hand),
        fingers_extended=fingers_extended(hand),
        tip_distances=tip_distances,
    )


class MotionHistory:
    """
    Short rolling record of vertical wrist motion, used to spot a shake.

    Every call to `update` stores the current wrist as the reference for the
    next one. A direction sign is appended only when the vertical step
    exceeds `vertical_threshold`. One instance per session; never shared.
    """

    def __init__(
        self,
        capacity: int = 20,
        vertical_threshold: float = 0.02,
        min_samples: int = 6,
        min_direction_changes: int = 4,
    ):
        if int(capacity) <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self.vertical_threshold = float(vertical_threshold)
        self.min_samples = int(min_samples)
        self.min_direction_changes = int(min_direction_changes)

        self._directions: Deque[int] = deque(maxlen=self.capacity)
        self._prev_wrist: Optional[np.ndarray] = None
        self.last_motion: Optional[MotionSample] = None

    @classmethod
    def from_config(cls, cfg=None) -> 'MotionHistory':
        from signstream.config.config_manager import config as default_config
        cfg = cfg or default_config
        return cls(
            capacity=cfg.get('motion', 'history_capacity', default=20),
            vertical_threshold=cfg.get('motion', 'vertical_threshold', default=0.02),
            min_samples=cfg.get('motion', 'min_samples', default=6),
            min_direction_changes=cfg.get('motion', 'min_direction_changes', default=4),
        )

    @property
    def directions(self) -> Tuple[int, ...]:
        return tuple(self._directions)

    @property
    def previous_wrist(self) -> Optional[np.ndarray]:
        return self._prev_wrist

    def __len__(self) -> int:
        return len(self._directions)

    def update(self, hand: Hand) -> Optional[MotionSample]:
        wrist = hand[WRIST]
        sample = None
        if self._prev_wrist is not None:
            dx, dy, dz = displacement(self._prev_wrist, wrist)
            vertical_dir = 0
            if dy < -self.vertical_threshold:
                vertical_dir = -1  # moving up
            if dy > self.vertical_threshold:
                vertical_dir = 1   # moving down
            if vertical_dir != 0:
                self._directions.append(vertical_dir)
            sample = MotionSample(dx=dx, dy=dy, dz=dz, speed=float(np.hypot(dx, dy)),
                                  vertical_dir=vertical_dir)

        self._prev_wrist = np.array(wrist, dtype=float)
        self.last_motion = sample
        return sample

    def direction_changes(self) -> int:
        return sign_changes(self._directions)

    def is_shaking(self) -> bool:
        if len(self._directions) <= self.min_samples:
            return False
        return self.direction_changes() >= self.min_direction_changes

    def consume_shake(self) -> bool:
        """True when a shake is present; clears the sign history so it fires once."""
        if not self.is_shaking():
            return False
        logger.debug("shake detected after %d direction changes", self.direction_changes())
        self._directions.clear()
        return True

    def reset(self):
        self._directions.clear()
        self._prev_wrist = None
        self.last_motion = None


class StaticPoseClassifier:
    """
    Single-frame letter-shape classifier.

    Maps one hand to a letter A-Z, NONE, or the shake label "6-7". The shake
    check runs against the injected MotionHistory, which is updated on every
    non-empty call regardless of which branch produces the label.
    """

    def __init__(self, motion_history: Optional[MotionHistory] = None):
        self.motion_history = motion_history if motion_history is not None else MotionHistory()

    def classify(self, landmarks) -> str:
        return self.detect(landmarks).gesture_name

    def detect(self, landmarks) -> GestureResult:
        if is_empty_hand(landmarks):
            return GestureResult(detected=False, gesture_name=labels.NONE, confidence=0.0,
                                 metadata={'reason': 'no_hand'})

        pose = compute_hand_pose(landmarks)
        motion = self.motion_history.update(pose.landmarks)

        base_metadata = {
            'orientation': pose.orientation,
            'fingers_extended': dict(pose.fingers_extended),
            'tip_distances': dict(pose.tip_distances),
            'motion': motion,
            'vertical_history': self.motion_history.directions,
            'reason': None,
        }

        if self.motion_history.consume_shake():
            base_metadata['reason'] = 'shake'
            return GestureResult(detected=True, gesture_name=labels.SHAKE, metadata=base_metadata)

        letter, reason = classify_letter(pose)
        base_metadata['reason'] = reason
        return GestureResult(
            detected=letter != labels.NONE,
            gesture_name=letter,
            confidence=1.0 if letter != labels.NONE else 0.0,
            metadata=base_metadata,
        )

    def reset(self):
        self.motion_history.reset()


def classify_letter(pose: HandPose) -> Tuple[str, str]:
    """
    Letter table over finger-extension groups. Returns (label, branch).

    Branch order matters: several groups overlap and earlier branches mask
    later ones. Known dead branches are kept so behavior matches the
    deployed game (Q can never fire, and the second F check shadows O
    whenever middle, ring and pinky are all extended).
    """
    hand = pose.landmarks
    ext = pose.fingers_extended
    orientation = pose.orientation

    thumb_open = ext['thumb']
    index_open = ext['index']
    middle_open = ext['middle']
    ring_open = ext['ring']
    pinky_open = ext['pinky']

    thumb_tip = hand[THUMB_TIP]
    d_thumb_index = pose.tip_distances['thumb_index']
    d_thumb_middle = pose.tip_distances['thumb_middle']
    d_index_middle = pose.tip_distances['index_middle']

    def near_thumb(idx: int, limit: float) -> bool:
        return euclidean(thumb_tip, hand[idx]) < limit

    # 1. Fist group: A, T, N, M, S, E
    if not index_open and not middle_open and not ring_open and not pinky_open:
        if thumb_open:
            return 'A', 'fist_thumb_out'
        if near_thumb(INDEX_PIP, THUMB_TOUCH_DIST) or near_thumb(INDEX_MCP, THUMB_TOUCH_DIST):
            return 'T', 'fist_thumb_index'
        if near_thumb(MIDDLE_PIP, THUMB_TOUCH_DIST) or near_thumb(MIDDLE_MCP, THUMB_TOUCH_DIST):
            return 'N', 'fist_thumb_middle'
        if near_thumb(RING_PIP, THUMB_TOUCH_DIST) or near_thumb(PINKY_PIP, THUMB_TOUCH_DIST):
            return 'M', 'fist_thumb_ring'
        if near_thumb(INDEX_DIP, THUMB_TOUCH_DIST):
            return 'S', 'fist_thumb_across'
        return 'E', 'fist_default'

    # 2. Index only: G, L, Q, Z, X, D
    if index_open and not middle_open and not ring_open and not pinky_open:
        if thumb_open:
            if orientation == labels.SIDE:
                return 'G', 'index_thumb_side'
            return 'L', 'index_thumb'
        if orientation == labels.DOWN:
            # thumb_open was handled above, so Q is unreachable
            if thumb_open:
                return 'Q', 'index_down_thumb'
            return 'Z', 'index_down'
        if orientation == labels.SIDE:
            return 'G', 'index_side'
        if euclidean(hand[INDEX_TIP], hand[INDEX_PIP]) < INDEX_HOOK_DIST:
            return 'X', 'index_hooked'
        return 'D', 'index_default'

    # 3. Index + middle: P, H, U, K, V
    if index_open and middle_open and not ring_open and not pinky_open:
        if orientation == labels.DOWN:
            return 'P', 'two_down'
        if orientation == labels.SIDE:
            return 'H', 'two_side'
        if d_index_middle < TIPS_TOGETHER_DIST:
            return 'U', 'two_together'
        if near_thumb(MIDDLE_PIP, THUMB_ON_MIDDLE_DIST):
            return 'K', 'two_thumb_middle'
        return 'V', 'two_default'

    # 4. Three fingers
    if index_open and middle_open and ring_open and not pinky_open:
        return 'W', 'three'

    # 5. Pinky only
    if not index_open and not middle_open and not ring_open and pinky_open:
        if thumb_open:
            return 'Y', 'pinky_thumb'
        return 'I', 'pinky_default'

    # 6. F: index curled onto the thumb, other three up
    if not index_open and middle_open and ring_open and pinky_open:
        return 'F', 'index_curled'

    if middle_open and ring_open and pinky_open:
        if d_thumb_index < THUMB_INDEX_TOUCH_DIST:
            return 'F', 'thumb_index_touch'

    # 7. O: fingertips meeting the thumb
    if d_thumb_index < THUMB_INDEX_TOUCH_DIST and d_thumb_middle < THUMB_INDEX_TOUCH_DIST:
        return 'O', 'tips_on_thumb'

    # 8. Open hand: C (curved gap) or B (flat)
    if index_open and middle_open and ring_open and pinky_open:
        if C_GAP_MIN < d_thumb_index < C_GAP_MAX:
            return 'C', 'open_curved'
        return 'B', 'open_flat'

    return labels.NONE, 'no_group'


def recognize_gesture(landmarks, motion_history: Optional[MotionHistory] = None) -> str:
    """
    One-shot static classification.

    Without an explicit history every call starts fresh, so no shake can be
    reported; pass the session's MotionHistory to keep continuity.
    """
    return StaticPoseClassifier(motion_history).classify(landmarks)


def classify_frame(classifier: StaticPoseClassifier, frame) -> List[str]:
    """One label per hand, in frame order."""
    if frame is None or len(frame) == 0:
        return []
    return [classifier.classify(hand) for hand in frame]


__all__ = [
    'HandPose',
    'GestureResult',
    'MotionSample',
    'MotionHistory',
    'StaticPoseClassifier',
    'check_orientation',
    'is_finger_extended',
    'fingers_extended',
    'compute_hand_pose',
    'classify_letter',
    'recognize_gesture',
    'classify_frame',
]
