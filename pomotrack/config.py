"""
Settings persistence — JSON file in config/, merged over defaults.

This is the validation boundary: anything that reaches the timer as a
Settings value has positive durations and a long-break interval >= 1.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from pomotrack.data.models import Settings

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.json"

# Default settings (used if JSON doesn't exist yet)
DEFAULT_SETTINGS = asdict(Settings())

_POSITIVE_INT_KEYS = (
    "work_duration_minutes",
    "short_break_minutes",
    "long_break_minutes",
    "long_break_interval",
    "daily_goal",
)
_BOOL_KEYS = (
    "auto_start_breaks",
    "sound_enabled",
    "notifications_enabled",
    "flow_mode_enabled",
    "exclude_weekends_from_streak",
)


class ConfigError(ValueError):
    """Raised when a settings value fails validation."""


def validate_settings(raw: dict) -> Settings:
    """Merge *raw* over the defaults and return a validated Settings."""
    merged = {**DEFAULT_SETTINGS, **{k: v for k, v in raw.items() if k in DEFAULT_SETTINGS}}

    for key in _POSITIVE_INT_KEYS:
        value = merged[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"{key} must be a positive integer, got {value!r}")
    for key in _BOOL_KEYS:
        if not isinstance(merged[key], bool):
            raise ConfigError(f"{key} must be true or false, got {merged[key]!r}")

    volume = merged["sound_volume"]
    if isinstance(volume, bool) or not isinstance(volume, (int, float)) or not 0.0 <= volume <= 1.0:
        raise ConfigError(f"sound_volume must be between 0 and 1, got {volume!r}")
    merged["sound_volume"] = float(volume)

    return Settings(**merged)


def load_settings(path: Optional[Path] = None) -> Settings:
    """Read settings from disk, falling back to defaults on a bad file."""
    path = path or CONFIG_PATH
    if not path.exists():
        return Settings()
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ConfigError("settings file must contain a JSON object")
        return validate_settings(raw)
    except (json.JSONDecodeError, ConfigError) as e:
        logger.warning("Bad settings file %s (%s), using defaults.", path, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    """Validate and write settings. Raises ConfigError on invalid values."""
    path = path or CONFIG_PATH
    validated = validate_settings(asdict(settings))
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(validated), f, indent=2)
    logger.info("Settings saved to %s", path)


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Loads and saves the user's timer preferences as a small JSON file.
#
# Key design decisions:
#   - Defaults come from the Settings dataclass itself, so there is exactly
#     one place that says "25 minutes".
#   - Loading is forgiving (a hand-edited broken file means defaults plus a
#     warning), saving is strict (ConfigError goes back to the settings form).
#   - bool is a subclass of int in Python, so validation rejects True/False
#     explicitly where an integer is expected.
