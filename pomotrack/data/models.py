"""
Data models for pomotrack.

Plain dataclasses that represent database rows and the values the timer hands
around. They decouple the rest of the app from raw SQL rows so every layer
speaks the same "language."
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class TimerMode(str, Enum):
    """The three phases of the Pomodoro cycle."""
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


@dataclass(frozen=True)
class Settings:
    """User preferences. Validated at the config boundary, read-only here."""
    work_duration_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    long_break_interval: int = 4
    daily_goal: int = 8
    auto_start_breaks: bool = False
    sound_enabled: bool = True
    sound_volume: float = 0.5
    notifications_enabled: bool = True
    flow_mode_enabled: bool = False
    exclude_weekends_from_streak: bool = False


@dataclass
class Project:
    """A grouping key for tasks (e.g. 'Thesis', 'Side project')."""
    id: Optional[int] = None
    name: str = ""
    color: str = "#6366f1"
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Task:
    """A unit of work the user attributes pomodoros to."""
    id: Optional[int] = None
    title: str = ""
    project_id: Optional[int] = None
    completed: bool = False
    estimated_pomodoros: int = 1
    actual_pomodoros: int = 0
    due_date: Optional[date] = None
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Session:
    """
    One recorded work run, completed or interrupted.

    duration_minutes is the time actually spent, not the configured length:
    flow-mode runs can be far longer than the nominal 25 minutes.
    """
    id: Optional[int] = None
    task_id: Optional[int] = None
    duration_minutes: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    interrupted: bool = False


@dataclass(frozen=True)
class CompletedRun:
    """What the timer emits when a run ends, before it becomes a Session."""
    mode: TimerMode
    interrupted: bool
    elapsed_seconds: int
    started_at_ms: int
    completed_at_ms: int

    @property
    def duration_minutes(self) -> int:
        return max(0, int(self.elapsed_seconds / 60 + 0.5))


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Defines the "shape" of every important object as Python dataclasses.
#   They carry data but have no database or timer logic themselves.
#
# Key classes and why they exist:
#   - TimerMode: str-backed Enum so values round-trip through SQLite/JSON
#     as plain strings ("work", "shortBreak", "longBreak").
#   - Settings: frozen, so the timer can never mutate preferences behind
#     the settings screen's back. A new value replaces the old one.
#   - Project / Task: two-level hierarchy for grouping stats.
#   - Session: frozen because a recorded run is history. Corrections mean
#     delete + re-record, never edit.
#   - CompletedRun: the timer's output. Kept separate from Session so the
#     timer doesn't need to know about task attribution or storage ids.
#
# Interviewer-friendly talking points:
#   1. Frozen dataclasses give immutability for free (FrozenInstanceError on
#      assignment) and make instances hashable.
#   2. Actual vs nominal duration: storing what really happened means stats
#      never assume a fixed 25-minute unit.
