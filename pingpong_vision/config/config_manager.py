"""
Configuration Management for pingpong-vision

Loads and provides access to configuration from config.json.
Allows runtime configuration of detection thresholds, camera and display settings.
Supports both plain values and the [value, description] format.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.json"


class Config:
    """
    Singleton configuration manager that loads from config.json
    """
    _instance = None
    _config_data: Dict[str, Any] = {}
    _config_path: str = ""

    def __new__(cls, *args, **kwargs):
        # Accept Config(path) without breaking the singleton
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration from JSON file.

        Args:
            config_path: Path to config.json. If provided, force reload from
                         that path. If None, load from the packaged default
                         only on first initialization.
        """
        if config_path is not None:
            self._config_path = str(config_path)
            self.reload()
            return

        if not self._config_data:  # Only load once
            self._config_path = str(DEFAULT_CONFIG_PATH)
            self.reload()

    def reload(self):
        """Reload configuration from file."""
        try:
            with open(self._config_path, 'r') as f:
                self._config_data = json.load(f)
            print(f"✓ Loaded configuration from {self._config_path}")
        except FileNotFoundError:
            print(f"⚠ Config file not found: {self._config_path}")
            print("  Using default values")
            self._config_data = self._get_defaults()
        except json.JSONDecodeError as e:
            print(f"⚠ Error parsing config file: {e}")
            print("  Using default values")
            self._config_data = self._get_defaults()

    def save(self):
        """Save current configuration back to file."""
        try:
            with open(self._config_path, 'w') as f:
                json.dump(self._config_data, f, indent=2)
            print(f"✓ Saved configuration to {self._config_path}")
        except OSError as e:
            print(f"✗ Error saving config: {e}")

    def get(self, *keys, default=None) -> Any:
        """
        Get configuration value using dot notation.
        Handles both plain values and the [value, description] format.

        Examples:
            config.get('camera', 'index')  # Returns 0
            config.get('ball_tracking', 'zones', 'left_width')

        Args:
            keys: Path to value (e.g., 'ball_tracking', 'sensitivity')
            default: Default value if path doesn't exist

        Returns:
            Configuration value or default
        """
        current = self._config_data
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        if isinstance(current, list) and len(current) >= 1:
            return current[0]  # Return the value part

        return current

    def get_with_description(self, *keys, default=None) -> Tuple[Any, str]:
        """
        Get configuration value AND description.

        Returns:
            Tuple of (value, description) or (default, "")
        """
        current = self._config_data
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return (default, "")

        if isinstance(current, list):
            if len(current) >= 2:
                return (current[0], current[1])
            elif len(current) == 1:
                return (current[0], "")

        return (current, "")

    def set(self, *keys, value):
        """
        Set configuration value using dot notation.

        Example:
            config.set('ball_tracking', 'sensitivity', value=0.8)
        """
        if len(keys) == 0:
            return

        current = self._config_data
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Keep the description when overwriting a [value, description] entry
        existing = current.get(keys[-1])
        if isinstance(existing, list) and len(existing) >= 2 and not isinstance(value, list):
            current[keys[-1]] = [value, existing[1]]
        else:
            current[keys[-1]] = value

    def _get_defaults(self) -> Dict:
        """Return default configuration values."""
        return copy.deepcopy(DEFAULTS)

    @property
    def data(self) -> Dict:
        """Get entire configuration dictionary."""
        return self._config_data

    @property
    def path(self) -> str:
        return self._config_path


DEFAULTS = {
    "ball_tracking": {
        "sensitivity": 0.7,
        "debounce_ms": 1000,
        "min_speed": 10.0,
        "min_ball_radius": 8,
        "scan_stride": 4,
        "patch_radius": 15,
        "max_candidates": 3,
        "max_history": 10,
        "zones": {
            "left_width": 0.4,
            "right_width": 0.4
        }
    },
    "gesture_recognition": {
        "policy": "pose_shape",
        "debounce_ms": 3000,
        "extended_threshold": 0.05,
        "single_pip_margin": 0.08,
        "single_mcp_margin": 0.10,
        "label_teams": {
            "thumbsUp": "home",
            "openPalm": "away",
            "single": "home",
            "double": "away"
        }
    },
    "hand_tracking": {
        "max_num_hands": 1,
        "model_complexity": 1,
        "min_detection_confidence": 0.5,
        "min_tracking_confidence": 0.5
    },
    "camera": {
        "index": 0,
        "flip_horizontal": True,
        "ball": {"width": 1280, "height": 720},
        "gesture": {"width": 640, "height": 480}
    },
    "display": {
        "window_name": "pingpong-vision",
        "show_window": True,
        "show_zones": True,
        "status_reset_seconds": 2.0
    }
}


# Global configuration instance
config = Config()


# Convenience functions for common access patterns
def get_ball_setting(param_name: str, default=None):
    """Get a ball tracking parameter."""
    return config.get('ball_tracking', param_name, default=default)


def get_gesture_setting(param_name: str, default=None):
    """Get a gesture recognition parameter."""
    return config.get('gesture_recognition', param_name, default=default)


def get_camera_setting(param_name: str, default=None):
    """Get a camera parameter."""
    return config.get('camera', param_name, default=default)


def get_display_setting(param_name: str, default=None):
    """Get a display / overlay setting."""
    return config.get('display', param_name, default=default)
