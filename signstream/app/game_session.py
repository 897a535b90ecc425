"""
Game session for SignStream

Owns everything stateful for one player's game: the motion history used by
the static classifier, the rolling gesture buffer, the dynamic matcher and
the score. Nothing here is shared between sessions, so several sessions can
run side by side (e.g. multiplayer) without leaking history.

Per tick the caller hands over whatever the landmark detector produced and
gets back the labels for that tick.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from signstream.detectors import labels
from signstream.detectors.dynamic_gestures import DynamicGestureMatcher
from signstream.detectors.gesture_buffer import GestureBuffer
from signstream.detectors.gesture_detectors import MotionHistory, StaticPoseClassifier
from signstream.detectors.landmarks import Frame, InvalidHandShape, as_hand

logger = logging.getLogger(__name__)

MODE_LETTERS = 'letters'
MODE_ACTIONS = 'actions'
MODE_ANIMALS = 'animals'
MODES = (MODE_LETTERS, MODE_ACTIONS, MODE_ANIMALS)


@dataclass
class FrameResult:
    """Labels produced for one tick."""
    hands: Frame = ()
    static_labels: List[str] = field(default_factory=list)
    dynamic_label: Optional[str] = None   # raw matcher output this tick
    action: str = labels.NONE             # held dynamic label
    dropped_hands: int = 0
    hit: bool = False

    @property
    def primary_label(self) -> str:
        """First hand's label, or the held action in action mode."""
        if self.static_labels:
            return self.static_labels[0]
        return self.action


class ScoreKeeper:
    """
    Sequential targets: only the oldest pending target can be hit.
    A hit scores base + streak * bonus and grows the streak; a miss resets it.
    """

    def __init__(self, targets: Sequence[str] = (), hit_base: int = 100, streak_bonus: int = 10):
        self.targets = list(targets)
        self.hit_base = int(hit_base)
        self.streak_bonus = int(streak_bonus)
        self.position = 0
        self.score = 0
        self.streak = 0
        self.hits = 0
        self.misses = 0

    @property
    def current_target(self) -> Optional[str]:
        if self.position < len(self.targets):
            return self.targets[self.position]
        return None

    @property
    def finished(self) -> bool:
        return self.position >= len(self.targets)

    def register(self, label: str) -> bool:
        """Score a label against the current target. Returns True on a hit."""
        target = self.current_target
        if target is None or label == labels.NONE or label != target:
            return False
        self.score += self.hit_base + self.streak * self.streak_bonus
        self.streak += 1
        self.hits += 1
        self.position += 1
        return True

    def miss(self):
        """The current target expired without a hit."""
        if self.finished:
            return
        self.streak = 0
        self.misses += 1
        self.position += 1


class GameSession:
    def __init__(
        self,
        mode: str = MODE_LETTERS,
        targets: Sequence[str] = (),
        cfg=None,
        classifier: Optional[StaticPoseClassifier] = None,
        buffer: Optional[GestureBuffer] = None,
        matcher: Optional[DynamicGestureMatcher] = None,
    ):
        if mode not in MODES:
            raise ValueError(f"unknown session mode {mode!r}, expected one of {MODES}")
        if cfg is None:
            from signstream.config.config_manager import config as cfg

        self.mode = mode
        self.classifier = classifier or StaticPoseClassifier(MotionHistory.from_config(cfg))
        self.buffer = buffer if buffer is not None else GestureBuffer.from_config(cfg)
        self.matcher = matcher or DynamicGestureMatcher.from_config(cfg)
        self.action_hold_s = float(cfg.get('session', 'action_hold_seconds', default=0.5))

        if mode == MODE_ACTIONS:
            hit_base = cfg.get('session', 'action_hit_base', default=500)
            streak_bonus = cfg.get('session', 'action_streak_bonus', default=50)
        else:
            hit_base = cfg.get('session', 'letter_hit_base', default=100)
            streak_bonus = cfg.get('session', 'letter_streak_bonus', default=10)
        self.score = ScoreKeeper(targets, hit_base=hit_base, streak_bonus=streak_bonus)

        self._action = labels.NONE
        self._action_time = 0.0
        self._last_label = labels.NONE
        self.active = True

    @property
    def motion_history(self) -> MotionHistory:
        return self.classifier.motion_history

    @property
    def action(self) -> str:
        return self._action

    def _validate(self, hands: Optional[Sequence[Any]]):
        valid, dropped = [], 0
        for hand in (() if hands is None else hands):
            try:
                valid.append(as_hand(hand))
            except InvalidHandShape as e:
                dropped += 1
                logger.warning("Dropping malformed hand: %s", e)
        return tuple(valid), dropped

    def process_frame(self, hands: Optional[Sequence[Any]], now: Optional[float] = None) -> FrameResult:
        """
        Feed one detector tick through the session.

        Args:
            hands: zero or more hands of 21 landmarks each
            now: timestamp in seconds (defaults to time.time())
        """
        if not self.active:
            raise RuntimeError("session has ended")
        now = time.time() if now is None else float(now)

        frame, dropped = self._validate(hands)
        result = FrameResult(hands=frame, dropped_hands=dropped)

        if self.mode == MODE_ACTIONS:
            self._process_actions(frame, now, result)
        else:
            for hand in frame:
                label = self.classifier.classify(hand)
                if self.mode == MODE_ANIMALS:
                    label = labels.to_animal(label)
                result.static_labels.append(label)

        result.hit = self._score(result.primary_label)
        return result

    def _process_actions(self, frame: Frame, now: float, result: FrameResult):
        if frame:
            self.buffer.add(frame)
            dynamic = self.matcher.recognize(self.buffer)
            result.dynamic_label = dynamic
            # the hold runs from when the label first appears, not its latest match
            if dynamic is not None and dynamic != self._action:
                self._action = dynamic
                self._action_time = now

        if self._action != labels.NONE and now - self._action_time >= self.action_hold_s:
            self._action = labels.NONE
        result.action = self._action

    def _score(self, label: str) -> bool:
        # edge triggered: holding a pose must not hit twice
        if label == self._last_label:
            return False
        self._last_label = label
        hit = self.score.register(label)
        if hit:
            logger.debug("hit %s (score=%d streak=%d)", label, self.score.score, self.score.streak)
        return hit

    def end(self):
        """Discard all per-session history."""
        self.buffer.clear()
        self.classifier.reset()
        self._action = labels.NONE
        self._last_label = labels.NONE
        self.active = False
