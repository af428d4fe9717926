"""Duration lookup and display formatting."""

from __future__ import annotations

from pomotrack.data.models import Settings, TimerMode


def duration_seconds(mode: TimerMode, settings: Settings) -> int:
    """Configured length of *mode* in seconds."""
    if mode == TimerMode.WORK:
        return settings.work_duration_minutes * 60
    if mode == TimerMode.SHORT_BREAK:
        return settings.short_break_minutes * 60
    return settings.long_break_minutes * 60


def format_clock(seconds: int) -> str:
    """Seconds as MM:SS. Minutes are not wrapped at 60 (flow runs go long)."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_duration(minutes: int) -> str:
    """Minutes as '45m', '2h' or '1h 30m'."""
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
