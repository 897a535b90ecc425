"""
Dynamic (multi-frame) Gesture Detection

Recognizes compound motion gestures from a rolling window of whole frames:

- HELLO: one open hand waving side to side
- YES:   a Y-shaped hand nodding up and down
- NO:    index + middle snapping onto the thumb after being open
- HELP:  fist resting on a flat palm, both lifted
- TIME:  index finger tapping the other wrist

Each gesture is a predicate over the frame history. Predicates run in a
fixed priority order and the first match wins; none of them mutates the
buffer. Hands carry no identity between frames, so "the same hand" is
approximated by a pluggable HandSelector.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from signstream.detectors import labels
from signstream.detectors.gesture_detectors import GestureResult, fingers_extended
from signstream.detectors.landmarks import (
    Frame, Hand, as_frame, LONG_FINGERS, FINGER_JOINTS,
    WRIST, THUMB_TIP, INDEX_TIP, MIDDLE_TIP, MIDDLE_MCP,
)
from signstream.utils.math_utils import euclidean, count_reversals, value_range

logger = logging.getLogger(__name__)

HandPredicate = Callable[[Hand], bool]
FramePredicate = Callable[[Sequence[Frame]], bool]


# Hand shape predicates

def is_open_upright(hand: Hand) -> bool:
    """All four fingertips above their MCP joints (y grows downward)."""
    for finger in LONG_FINGERS:
        mcp, _, _, tip = FINGER_JOINTS[finger]
        if not hand[tip][1] < hand[mcp][1]:
            return False
    return True


def is_y_shape(hand: Hand) -> bool:
    ext = fingers_extended(hand)
    return (ext['thumb'] and ext['pinky']
            and not ext['index'] and not ext['middle'] and not ext['ring'])


def is_fist(hand: Hand) -> bool:
    ext = fingers_extended(hand)
    return not any(ext[f] for f in LONG_FINGERS)


def is_flat(hand: Hand) -> bool:
    ext = fingers_extended(hand)
    return all(ext[f] for f in LONG_FINGERS)


def is_pointing(hand: Hand) -> bool:
    ext = fingers_extended(hand)
    return ext['index'] and not ext['middle'] and not ext['ring'] and not ext['pinky']


def thumb_distances(hand: Hand) -> Tuple[float, float]:
    """(thumb-index, thumb-middle) tip distances."""
    return (euclidean(hand[THUMB_TIP], hand[INDEX_TIP]),
            euclidean(hand[THUMB_TIP], hand[MIDDLE_TIP]))


class HandSelector:
    """Strategy for picking "the" tracked hand out of a frame."""

    def select(self, frame: Frame, predicate: HandPredicate) -> Optional[Hand]:
        raise NotImplementedError


class FirstQualifyingHandSelector(HandSelector):
    """
    Picks the first hand in detector order that satisfies the predicate.

    Without tracking ids this can silently switch between physical hands
    from one frame to the next when both qualify.
    """

    def select(self, frame: Frame, predicate: HandPredicate) -> Optional[Hand]:
        for hand in frame:
            if predicate(hand):
                return hand
        return None


@dataclass
class GestureRule:
    name: str
    predicate: FramePredicate


def _frame_has(frame: Frame, predicate: HandPredicate) -> bool:
    return any(predicate(hand) for hand in frame)


class WaveDetector:
    """HELLO: open hand swept left-right at least twice."""

    def __init__(
        self,
        window: int = 20,
        min_open_ratio: float = 0.7,
        min_samples: int = 10,
        min_step: float = 0.005,
        min_reversals: int = 2,
        min_range: float = 0.1,
        hand_selector: Optional[HandSelector] = None,
    ):
        self.window = int(window)
        self.min_open_ratio = float(min_open_ratio)
        self.min_samples = int(min_samples)
        self.min_step = float(min_step)
        self.min_reversals = int(min_reversals)
        self.min_range = float(min_range)
        self.hand_selector = hand_selector or FirstQualifyingHandSelector()

    def __call__(self, frames: Sequence[Frame]) -> bool:
        recent = frames[-self.window:]
        if not recent:
            return False

        open_frames = [f for f in recent if _frame_has(f, is_open_upright)]
        if len(open_frames) < self.min_open_ratio * len(recent):
            return False

        xs = []
        for frame in open_frames:
            hand = self.hand_selector.select(frame, is_open_upright)
            if hand is not None:
                xs.append(hand[WRIST][0])
        if len(xs) < self.min_samples:
            return False

        reversals = count_reversals(xs, self.min_step)
        return reversals >= self.min_reversals and value_range(xs) > self.min_range


class NodDetector:
    """YES: Y-shaped hand bobbing vertically, clearly more than sideways."""

    def __init__(
        self,
        window: int = 15,
        min_frames: int = 8,
        min_step: float = 0.005,
        min_reversals: int = 2,
        min_range: float = 0.1,
        vertical_dominance: float = 1.5,
        hand_selector: Optional[HandSelector] = None,
    ):
        self.window = int(window)
        self.min_frames = int(min_frames)
        self.min_step = float(min_step)
        self.min_reversals = int(min_reversals)
        self.min_range = float(min_range)
        self.vertical_dominance = float(vertical_dominance)
        self.hand_selector = hand_selector or FirstQualifyingHandSelector()

    def __call__(self, frames: Sequence[Frame]) -> bool:
        if not frames or not _frame_has(frames[-1], is_y_shape):
            return False

        xs, ys = [], []
        for frame in frames[-self.window:]:
            hand = self.hand_selector.select(frame, is_y_shape)
            if hand is not None:
                xs.append(hand[WRIST][0])
                ys.append(hand[WRIST][1])
        # strictly more than min_frames
        if len(ys) <= self.min_frames:
            return False

        y_range = value_range(ys)
        x_range = value_range(xs)
        return (count_reversals(ys, self.min_step) >= self.min_reversals
                and y_range > self.min_range
                and y_range > self.vertical_dominance * x_range)


class TapDetector:
    """NO: thumb, index and middle pinched now, spread apart a moment ago."""

    def __init__(
        self,
        closed_dist: float = 0.05,
        open_dist: float = 0.1,
        lookback_start: int = 15,
        lookback_end: int = 5,
    ):
        self.closed_dist = float(closed_dist)
        self.open_dist = float(open_dist)
        self.lookback_start = int(lookback_start)
        self.lookback_end = int(lookback_end)

    def is_tap_pose(self, hand: Hand) -> bool:
        d_index, d_middle = thumb_distances(hand)
        return d_index < self.closed_dist and d_middle < self.closed_dist

    def is_spread(self, hand: Hand) -> bool:
        d_index, d_middle = thumb_distances(hand)
        return d_index > self.open_dist and d_middle > self.open_dist

    def __call__(self, frames: Sequence[Frame]) -> bool:
        if not frames or not _frame_has(frames[-1], self.is_tap_pose):
            return False
        # relative offsets [-lookback_start, -lookback_end)
        earlier = frames[-self.lookback_start:-self.lookback_end]
        return any(_frame_has(frame, self.is_spread) for frame in earlier)


class LiftDetector:
    """HELP: fist stacked on a flat palm, the pair rising."""

    def __init__(
        self,
        max_stack_gap: float = 0.15,
        window: int = 10,
        min_samples: int = 5,
        min_rise: float = 0.1,
        empty_frame_y: float = 1.0,
    ):
        self.max_stack_gap = float(max_stack_gap)
        self.window = int(window)
        self.min_samples = int(min_samples)
        self.min_rise = float(min_rise)
        self.empty_frame_y = float(empty_frame_y)

    def find_stack(self, frame: Frame) -> Optional[Tuple[Hand, Hand]]:
        """(fist, flat) pair whose fist wrist sits on the flat hand's middle MCP."""
        if len(frame) < 2:
            return None
        for i, fist in enumerate(frame):
            if not is_fist(fist):
                continue
            for j, flat in enumerate(frame):
                if i == j or not is_flat(flat):
                    continue
                if euclidean(fist[WRIST], flat[MIDDLE_MCP]) < self.max_stack_gap:
                    return fist, flat
        return None

    def frame_height(self, frame: Frame) -> float:
        stack = self.find_stack(frame)
        if stack is not None:
            fist, flat = stack
            return float((fist[WRIST][1] + flat[WRIST][1]) / 2.0)
        if frame:
            return float(np.mean([hand[WRIST][1] for hand in frame]))
        return self.empty_frame_y

    def __call__(self, frames: Sequence[Frame]) -> bool:
        if not frames or self.find_stack(frames[-1]) is None:
            return False
        ys = [self.frame_height(frame) for frame in frames[-self.window:]]
        if len(ys) < self.min_samples:
            return False
        # y decreases upward
        return (ys[0] - ys[-1]) > self.min_rise


class WristTapDetector:
    """TIME: pointing index finger touching the other hand's wrist. No history needed."""

    def __init__(self, max_touch_dist: float = 0.1):
        self.max_touch_dist = float(max_touch_dist)

    def __call__(self, frames: Sequence[Frame]) -> bool:
        if not frames:
            return False
        current = frames[-1]
        if len(current) < 2:
            return False
        for i, pointer in enumerate(current):
            if not is_pointing(pointer):
                continue
            for j, target in enumerate(current):
                if i == j:
                    continue
                if euclidean(pointer[INDEX_TIP], target[WRIST]) < self.max_touch_dist:
                    return True
        return False


def default_rules(hand_selector: Optional[HandSelector] = None, cfg=None) -> List[GestureRule]:
    """HELLO, YES, NO, HELP, TIME in priority order."""
    selector = hand_selector or FirstQualifyingHandSelector()

    def setting(section, name, default):
        if cfg is None:
            return default
        return cfg.get('dynamic', section, name, default=default)

    return [
        GestureRule(labels.HELLO, WaveDetector(
            window=setting('wave', 'window', 20),
            min_open_ratio=setting('wave', 'min_open_ratio', 0.7),
            min_samples=setting('wave', 'min_samples', 10),
            min_step=setting('wave', 'min_step', 0.005),
            min_reversals=setting('wave', 'min_reversals', 2),
            min_range=setting('wave', 'min_range', 0.1),
            hand_selector=selector,
        )),
        GestureRule(labels.YES, NodDetector(
            window=setting('nod', 'window', 15),
            min_frames=setting('nod', 'min_frames', 8),
            min_step=setting('nod', 'min_step', 0.005),
            min_reversals=setting('nod', 'min_reversals', 2),
            min_range=setting('nod', 'min_range', 0.1),
            vertical_dominance=setting('nod', 'vertical_dominance', 1.5),
            hand_selector=selector,
        )),
        GestureRule(labels.NO, TapDetector(
            closed_dist=setting('tap', 'closed_dist', 0.05),
            open_dist=setting('tap', 'open_dist', 0.1),
            lookback_start=setting('tap', 'lookback_start', 15),
            lookback_end=setting('tap', 'lookback_end', 5),
        )),
        GestureRule(labels.HELP, LiftDetector(
            max_stack_gap=setting('lift', 'max_stack_gap', 0.15),
            window=setting('lift', 'window', 10),
            min_samples=setting('lift', 'min_samples', 5),
            min_rise=setting('lift', 'min_rise', 0.1),
        )),
        GestureRule(labels.TIME, WristTapDetector(
            max_touch_dist=setting('wrist_tap', 'max_touch_dist', 0.1),
        )),
    ]


class DynamicGestureMatcher:
    """
    Runs the ordered rule chain over a GestureBuffer.

    `recognize` returns the first matching gesture name, or None when the
    buffer is too short or nothing matches.
    """

    def __init__(
        self,
        rules: Optional[List[GestureRule]] = None,
        hand_selector: Optional[HandSelector] = None,
        min_frames: int = 5,
    ):
        self.hand_selector = hand_selector or FirstQualifyingHandSelector()
        self.rules: List[GestureRule] = list(rules) if rules is not None else default_rules(self.hand_selector)
        self.min_frames = int(min_frames)

    @classmethod
    def from_config(cls, cfg=None, hand_selector: Optional[HandSelector] = None) -> 'DynamicGestureMatcher':
        from signstream.config.config_manager import config as default_config
        cfg = cfg or default_config
        return cls(
            rules=default_rules(hand_selector, cfg),
            hand_selector=hand_selector,
            min_frames=cfg.get('dynamic', 'min_frames', default=5),
        )

    @property
    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def register(self, rule: GestureRule, before: Optional[str] = None):
        """Append a rule, or insert it ahead of the named one."""
        if before is None:
            self.rules.append(rule)
            return
        for i, existing in enumerate(self.rules):
            if existing.name == before:
                self.rules.insert(i, rule)
                return
        raise KeyError(f"no rule named {before!r}")

    def recognize(self, buffer) -> Optional[str]:
        result = self.detect(buffer)
        return result.gesture_name if result.detected else None

    def detect(self, buffer) -> GestureResult:
        raw = buffer.get() if hasattr(buffer, 'get') else tuple(buffer)
        base_metadata = {
            'frame_count': len(raw),
            'min_frames': self.min_frames,
            'reason': None,
        }

        if len(raw) < self.min_frames:
            base_metadata['reason'] = 'not_enough_frames'
            return GestureResult(detected=False, gesture_name='none', confidence=0.0,
                                 metadata=base_metadata)

        frames = [as_frame(f) for f in raw]
        for rule in self.rules:
            if rule.predicate(frames):
                logger.debug("dynamic gesture %s matched over %d frames", rule.name, len(frames))
                base_metadata['reason'] = 'matched'
                return GestureResult(detected=True, gesture_name=rule.name, metadata=base_metadata)

        base_metadata['reason'] = 'no_rule_matched'
        return GestureResult(detected=False, gesture_name='none', confidence=0.0,
                             metadata=base_metadata)


def recognize_dynamic_gesture(buffer, matcher: Optional[DynamicGestureMatcher] = None) -> Optional[str]:
    return (matcher or DynamicGestureMatcher()).recognize(buffer)
