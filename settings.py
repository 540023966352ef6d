"""Persistent settings for Yatzy.

Stores user preferences in ~/.yatzy_settings.json.
Follows the same load/merge pattern as score_history.py.
"""

import json
import os
from pathlib import Path

DEFAULTS = {
    "player_id": "local",
    "player_name": "Player",
    "error_tracking": False,
    "max_scores": 3000,
}

ERROR_TRACKING_ENV = "ENABLE_ERROR_TRACKING"


def _default_path():
    """Return the default path for the settings file."""
    return Path.home() / ".yatzy_settings.json"


def load_settings(path=None):
    """Load settings from JSON file. Returns DEFAULTS on missing/corrupt.

    Merges with DEFAULTS so missing keys get default values. Unknown keys
    are ignored, and values of the wrong type fall back to their default.
    """
    if path is None:
        path = _default_path()
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return dict(DEFAULTS)
    if not isinstance(data, dict):
        return dict(DEFAULTS)

    result = dict(DEFAULTS)
    for key, default in DEFAULTS.items():
        value = data.get(key)
        if isinstance(value, type(default)) and not (
                isinstance(value, bool) and not isinstance(default, bool)):
            result[key] = value
    if result["max_scores"] < 1:
        result["max_scores"] = DEFAULTS["max_scores"]
    return result


def save_settings(settings, path=None):
    """Write settings dict to JSON. Silently ignores write errors."""
    if path is None:
        path = _default_path()
    path = Path(path)
    try:
        path.write_text(json.dumps(settings, indent=2))
    except OSError:
        pass


def error_tracking_enabled(settings, environ=None):
    """Anomaly persistence is on when configured or forced by the environment."""
    if environ is None:
        environ = os.environ
    if environ.get(ERROR_TRACKING_ENV, "").lower() == "true":
        return True
    return bool(settings.get("error_tracking", False))
