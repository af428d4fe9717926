"""User-facing alert texts for phase changes."""

from __future__ import annotations

from typing import Tuple

from pomotrack.data.models import TimerMode


def build_completion_message(finished: TimerMode, next_mode: TimerMode) -> Tuple[str, str]:
    """(title, body) shown when a countdown of *finished* runs out."""
    if finished == TimerMode.WORK:
        if next_mode == TimerMode.LONG_BREAK:
            return "Pomodoro Complete! 🍅", "Time for a long break!"
        return "Pomodoro Complete! 🍅", "Time for a short break!"
    return "Break Over!", "Ready to focus again?"
