"""
Configuration manager.
Loads config/config.yaml over built-in defaults and provides dot-path access.
"""

import copy
import os
import logging

import yaml

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "system": {"name": "LSA Sign Interpreter", "version": "1.0.0"},
    "camera": {
        "source": 0,
        "width": 640,
        "height": 480,
        "fps": 30,
        "flip_horizontal": False,
        "warmup_frames": 5,
        "loop": False,
    },
    "preprocess": {
        "target_width": None,
        "flip_horizontal": False,
        "equalize": False,
        "contrast": 1.0,
        "brightness": 0.0,
    },
    "hand": {
        "hsv_lower": [0, 20, 70],
        "hsv_upper": [20, 255, 255],
        "kernel_size": 3,
        "depth_threshold": 10.0,
        "max_finger_angle": 90.0,
        "min_contour_points": 4,
        "confidence": 0.8,
        "low_confidence": 0.3,
    },
    "face": {
        "face_cascade": None,
        "eye_cascade": None,
        "scale_factor": 1.1,
        "min_neighbors": 3,
        "min_face_size": [30, 30],
        "expressive_stddev": 50.0,
        "positive_mean": 127.0,
        "neutral_confidence": 0.5,
        "confidence_threshold": 0.7,
    },
    "fusion": {"confidence_threshold": 0.7},
    "grammar": {"history_size": 10, "max_bonus": 0.1},
    "pipeline": {"target_fps": 30, "metrics_window": 100},
    "history": {"max_items": None},
    "errors": {"max_entries": 100},
    "logging": {
        "level": "INFO",
        "file": None,
        "sign_file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "display": {"enabled": False, "window_name": "LSA Sign Interpreter"},
}

# Schema: sections and their expected types
_CONFIG_SCHEMA = {
    "camera": {"width": int, "height": int, "fps": int},
    "hand": {
        "kernel_size": int,
        "depth_threshold": float,
        "max_finger_angle": float,
        "confidence": float,
    },
    "face": {
        "scale_factor": float,
        "min_neighbors": int,
        "confidence_threshold": float,
    },
    "fusion": {"confidence_threshold": float},
    "grammar": {"history_size": int, "max_bonus": float},
    "pipeline": {"target_fps": int},
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """YAML-backed configuration with defaults.

    Created once at startup and passed to whoever needs a section.
    """

    def __init__(self, data: dict = None):
        self._data = _deep_merge(copy.deepcopy(DEFAULTS), data or {})

    def load(self, config_path=None):
        """Load configuration from a YAML file over the defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            loaded = {}

        if not isinstance(loaded, dict):
            logger.warning("Config root should be a mapping, got %s; using defaults",
                           type(loaded).__name__)
            loaded = {}

        self._data = _deep_merge(copy.deepcopy(DEFAULTS), loaded)
        self.validate()
        return self

    def validate(self) -> list:
        """Check fields against the schema; returns (and logs) warnings."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name not in section:
                    continue
                value = section[field_name]
                # Allow int where float is expected
                if expected_type is float and isinstance(value, (int, float)) and not isinstance(value, bool):
                    continue
                if not isinstance(value, expected_type) or isinstance(value, bool):
                    warnings.append(
                        f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                        f"got {type(value).__name__} ({value!r})"
                    )

        for w in warnings:
            logger.warning("Config validation: %s", w)
        if not warnings:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'camera.width'."""
        value = self._data
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Override a nested value (used for command-line overrides)."""
        keys = key_path.split(".")
        node = self._data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section) or {}

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def hand(self) -> dict:
        return self.get_section("hand")

    @property
    def face(self) -> dict:
        return self.get_section("face")

    @property
    def grammar(self) -> dict:
        return self.get_section("grammar")
