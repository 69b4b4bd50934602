"""
Centralized configuration manager.
Loads YAML configs and provides typed access with defaults.

Two files are read from config/:
    config.yaml  camera, pose model, api, visualization, logging
    tasks.yaml   per-task durations, thresholds and instructions
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

_DEFAULTS = {
    "camera": {
        "device_id": 0,
        "width": 1280,
        "height": 720,
        "fps": 30,
        "flip_horizontal": True,
    },
    "pose": {
        "min_detection_confidence": 0.5,
        "min_presence_confidence": 0.5,
        "min_tracking_confidence": 0.5,
    },
    "api": {
        "base_url": "http://127.0.0.1:8000/api",
        "timeout_sec": 10.0,
    },
    "tasks": {
        "one_leg_stance": {
            "duration_sec": 10,
            "ankle_height_threshold": 0.05,
            "min_visibility": 0.5,
            "instruction": "Stand on one leg!",
        },
        "raise_hand": {
            "duration_sec": 10,
            "min_visibility": 0.3,
            "instruction": "Raise your hand above your shoulder!",
        },
    },
}

# Schema: required sections and their expected types
_CONFIG_SCHEMA = {
    "camera": {
        "width": int,
        "height": int,
        "fps": int,
        "flip_horizontal": bool,
    },
    "pose": {
        "min_detection_confidence": float,
        "min_tracking_confidence": float,
    },
    "api": {
        "base_url": str,
        "timeout_sec": float,
    },
}

_TASK_SCHEMA = {
    "duration_sec": float,
    "grace_frames": int,
    "ankle_height_threshold": float,
    "min_visibility": float,
    "instruction": str,
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _type_ok(value, expected_type) -> bool:
    # Allow int where float is expected
    if expected_type is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected_type is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected_type)


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None, tasks_path=None):
        """Load configuration from YAML files on top of built-in defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")
        tasks_path = tasks_path or os.path.join(_CONFIG_DIR, "tasks.yaml")

        self._data = _deep_merge(_DEFAULTS, {})

        try:
            with open(config_path, "r") as f:
                self._data = _deep_merge(self._data, yaml.safe_load(f) or {})
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)

        try:
            with open(tasks_path, "r") as f:
                task_data = yaml.safe_load(f) or {}
            self._data["tasks"] = _deep_merge(self._data["tasks"], task_data)
            logger.info("Loaded tasks from %s", tasks_path)
        except FileNotFoundError:
            logger.warning("Tasks file not found: %s, using defaults", tasks_path)

        self._validate()
        return self

    def _validate(self):
        """Validate critical config fields against schema; warn, never raise."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section and not _type_ok(section[field_name], expected_type):
                    value = section[field_name]
                    warnings.append(
                        f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                        f"got {type(value).__name__} ({value!r})"
                    )

        for task_name, task_cfg in self.tasks.items():
            if not isinstance(task_cfg, dict):
                warnings.append(f"tasks.{task_name} should be a dict")
                continue
            for field_name, expected_type in _TASK_SCHEMA.items():
                if field_name in task_cfg and not _type_ok(task_cfg[field_name], expected_type):
                    warnings.append(
                        f"tasks.{task_name}.{field_name}: expected {expected_type.__name__}, "
                        f"got {type(task_cfg[field_name]).__name__}"
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
        """Override a nested value (used for CLI flags)."""
        keys = key_path.split(".")
        node = self._data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    def task(self, task_name: str) -> dict:
        """Settings for one task, e.g. 'raise_hand'."""
        return self.tasks.get(task_name, {})

    @property
    def camera(self) -> dict:
        return self._data.get("camera", {})

    @property
    def pose(self) -> dict:
        return self._data.get("pose", {})

    @property
    def api(self) -> dict:
        return self._data.get("api", {})

    @property
    def visualization(self) -> dict:
        return self._data.get("visualization", {})

    @property
    def tasks(self) -> dict:
        return self._data.get("tasks", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
