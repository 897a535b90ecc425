"""
Configuration Management for SignStream

Loads and provides access to configuration from config.json.
Allows runtime tuning of motion, dynamic gesture and session parameters.
Supports both plain values and the [value, description] format.
"""

import copy
import json
import logging
from typing import Dict, Any, Optional, Tuple
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.json"


_MISSING = object()


def _split_entry(entry) -> Tuple[Any, str]:
    """Unpack a stored entry: plain value, [value] or [value, description]."""
    if isinstance(entry, list) and entry:
        description = entry[1] if len(entry) > 1 else ""
        return entry[0], description
    return entry, ""


class Config:
    """
    Process-wide settings store backed by a JSON file.

    There is one instance: `Config()` returns it, and `Config(path)` points
    it at another file and reloads.
    """
    _instance = None
    _config_data: Dict[str, Any] = {}
    _config_path: str = ""

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if config_path is None and self._config_data:
            return
        self._config_path = str(config_path if config_path is not None else DEFAULT_CONFIG_PATH)
        self.reload()

    @property
    def path(self) -> str:
        return self._config_path

    def reload(self):
        """Re-read the file, falling back to DEFAULTS when it is missing or invalid."""
        try:
            with open(self._config_path, 'r') as f:
                self._config_data = json.load(f)
            logger.info("Loaded configuration from %s", self._config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using default values", self._config_path)
            self._config_data = self._get_defaults()
        except json.JSONDecodeError as e:
            logger.warning("Error parsing config file %s: %s, using default values", self._config_path, e)
            self._config_data = self._get_defaults()

    def save(self):
        with open(self._config_path, 'w') as f:
            json.dump(self._config_data, f, indent=2)
        logger.info("Saved configuration to %s", self._config_path)

    def _lookup(self, keys):
        node = self._config_data
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def get(self, *keys, default=None) -> Any:
        """
        Value at a nested key path, e.g. get('dynamic', 'wave', 'min_range').
        Descriptions are stripped; `default` is returned for unknown paths.
        """
        entry = self._lookup(keys)
        if entry is _MISSING:
            return default
        return _split_entry(entry)[0]

    def get_with_description(self, *keys, default=None) -> Tuple[Any, str]:
        entry = self._lookup(keys)
        if entry is _MISSING:
            return default, ""
        return _split_entry(entry)

    def set(self, *keys, value):
        """Store a value, creating sections as needed and keeping any description."""
        if not keys:
            return
        *sections, name = keys
        node = self._config_data
        for section in sections:
            if not isinstance(node.get(section), dict):
                node[section] = {}
            node = node[section]

        _, description = _split_entry(node.get(name))
        node[name] = [value, description] if description else value

    def _get_defaults(self) -> Dict:
        return copy.deepcopy(DEFAULTS)

    @property
    def data(self) -> Dict:
        return self._config_data


DEFAULTS: Dict[str, Any] = {
    "motion": {
        "history_capacity": 20,
        "vertical_threshold": 0.02,
        "min_samples": 6,
        "min_direction_changes": 4
    },
    "dynamic": {
        "buffer_capacity": 30,
        "min_frames": 5,
        "wave": {
            "window": 20,
            "min_open_ratio": 0.7,
            "min_samples": 10,
            "min_step": 0.005,
            "min_reversals": 2,
            "min_range": 0.1
        },
        "nod": {
            "window": 15,
            "min_frames": 8,
            "min_step": 0.005,
            "min_reversals": 2,
            "min_range": 0.1,
            "vertical_dominance": 1.5
        },
        "tap": {
            "closed_dist": 0.05,
            "open_dist": 0.1,
            "lookback_start": 15,
            "lookback_end": 5
        },
        "lift": {
            "max_stack_gap": 0.15,
            "window": 10,
            "min_samples": 5,
            "min_rise": 0.1
        },
        "wrist_tap": {
            "max_touch_dist": 0.1
        }
    },
    "session": {
        "action_hold_seconds": 0.5,
        "letter_hit_base": 100,
        "letter_streak_bonus": 10,
        "action_hit_base": 500,
        "action_streak_bonus": 50
    }
}


# Global configuration instance
config = Config()


# Convenience functions for common access patterns
def get_motion_setting(param_name: str, default=None):
    """Get a shake / motion history parameter."""
    return config.get('motion', param_name, default=default)


def get_dynamic_threshold(gesture_name: str, param_name: str, default=None):
    """Get a dynamic gesture threshold parameter."""
    return config.get('dynamic', gesture_name, param_name, default=default)


def get_session_setting(param_name: str, default=None):
    """Get a game session parameter."""
    return config.get('session', param_name, default=default)
