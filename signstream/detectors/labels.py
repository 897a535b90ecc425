"""
Gesture label vocabulary.

Letter-shapes come from the static classifier, compound names from the
dynamic matcher. The two output spaces are disjoint.
"""

from typing import Dict

NONE = 'NONE'
SHAKE = '6-7'

LETTERS = tuple('ABCDEFGHIJKLMNOPQRSTUVWXYZ')

# Orientation
UP = 'UP'
DOWN = 'DOWN'
SIDE = 'SIDE'
ORIENTATIONS = (UP, DOWN, SIDE, NONE)

# Compound / dynamic gestures, in matcher priority order
HELLO = 'HELLO'
YES = 'YES'
NO = 'NO'
HELP = 'HELP'
TIME = 'TIME'
DYNAMIC_GESTURES = (HELLO, YES, NO, HELP, TIME)

STATIC_GESTURES = LETTERS + (SHAKE, NONE)

# Pig Dog Crow Chicken challenge
ANIMAL_SIGNS: Dict[str, str] = {
    'S': 'PIG',      # fist
    'B': 'DOG',      # open palm
    'C': 'CROW',     # C shape
    'W': 'CHICKEN',  # 3 fingers
}
ANIMALS = ('PIG', 'DOG', 'CROW', 'CHICKEN')


def to_animal(label: str) -> str:
    return ANIMAL_SIGNS.get(label, NONE)


def is_dynamic(label: str) -> bool:
    return label in DYNAMIC_GESTURES
