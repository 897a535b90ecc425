"""
Stage table for the falling-tile game modes.

Letter stages turn each phrase into one target per letter; the action stage
keeps whole words because each word is a single dynamic gesture.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from signstream.detectors import labels


@dataclass(frozen=True)
class Stage:
    id: int
    name: str
    description: str
    phrases: Tuple[str, ...] = field(default_factory=tuple)
    speed_multiplier: float = 1.0
    required_score: int = 0

    @property
    def is_action_stage(self) -> bool:
        return bool(self.phrases) and all(labels.is_dynamic(p) for p in self.phrases)

    def targets(self, phrase: str) -> List[str]:
        phrase = phrase.upper()
        if labels.is_dynamic(phrase):
            return [phrase]
        return [ch for ch in phrase if ch in labels.LETTERS]

    def all_targets(self) -> List[str]:
        out = []
        for phrase in self.phrases:
            out.extend(self.targets(phrase))
        return out


STAGES: Tuple[Stage, ...] = (
    Stage(1, "The Basics", "Start with simple letters.",
          ("HI", "YO", "ABC"), 1.0, 500),
    Stage(2, "Action Words", "Move your hands!",
          ("NO", "TIME"), 1.0, 2000),
    Stage(3, "Speed Demon", "Fast tiles, no mercy.",
          ("QUICK", "JUMP", "ZEBRA", "VORTEX", "MATRIX", "FLIGHT", "POWER"), 1.5, 3000),
    Stage(4, "Master Class", "Complex patterns, maximum speed.",
          ("SYMPHONY", "RHYTHM", "JAZZ", "PUZZLE", "OXYGEN", "CRYPTO"), 1.8, 5000),
    Stage(5, "SignStream God", "The ultimate challenge.",
          ("VOCABULARY", "COLLABORATE", "AVAILABILITY", "EXTRAORDINARY", "KNOWLEDGE", "UNDERSTAND"),
          2.0, 10000),
)

_BY_ID: Dict[int, Stage] = {stage.id: stage for stage in STAGES}


def get_stage(stage_id: int) -> Stage:
    try:
        return _BY_ID[stage_id]
    except KeyError:
        raise KeyError(f"unknown stage id {stage_id}") from None
