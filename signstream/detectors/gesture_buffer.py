from collections import deque
from typing import Any, Sequence, Tuple


class GestureBuffer:
    """
    Rolling window of whole multi-hand frames for dynamic gesture matching.

    FIFO with a hard capacity: adding past capacity drops the oldest frame.
    Frame contents are stored as given and never validated here.
    """

    def __init__(self, capacity: int = 30):
        if isinstance(capacity, bool) or int(capacity) != capacity or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._capacity = int(capacity)
        self._frames = deque(maxlen=self._capacity)

    @classmethod
    def from_config(cls, cfg=None) -> 'GestureBuffer':
        from signstream.config.config_manager import config as default_config
        cfg = cfg or default_config
        return cls(capacity=cfg.get('dynamic', 'buffer_capacity', default=30))

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, frame: Sequence[Any]):
        self._frames.append(frame)

    def get(self) -> Tuple[Any, ...]:
        """Snapshot of the frames, oldest first."""
        return tuple(self._frames)

    def clear(self):
        self._frames.clear()

    @property
    def is_full(self) -> bool:
        return len(self._frames) == self._capacity

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self):
        return iter(self.get())
