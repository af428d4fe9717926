"""
Stats Service — derives every dashboard number from the session history.

compute_stats() is a pure function of (sessions, tasks, projects, options,
clock). Nothing here is cached or stored; call it again after a new session
is recorded.

Calendar conventions:
  - Dates are the local calendar date of a session's completed_at.
  - Day-of-week buckets use Python's date.weekday(): Monday = 0 … Sunday = 6.
  - Hour/day insights bucket on started_at.
  - Percentages and averages round half up (2/3 → 67, 12.5 → 13).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from pomotrack.data.models import Project, Session, Task
from pomotrack.services.clock import Clock, ms_to_datetime, system_clock
from pomotrack.services.durations import format_duration

logger = logging.getLogger(__name__)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday",
             "Saturday", "Sunday")
NO_PROJECT = "No Project"
WEEK_DAYS = 7


@dataclass(frozen=True)
class StatsOptions:
    exclude_weekends_from_streak: bool = False


@dataclass(frozen=True)
class DayStats:
    date: date
    completed: int = 0
    interrupted: int = 0
    total_minutes: int = 0


@dataclass(frozen=True)
class ProjectStats:
    project_id: Optional[int]
    project_name: str
    color: Optional[str]
    pomodoros: int
    total_minutes: int


@dataclass(frozen=True)
class Insights:
    by_day_of_week: Tuple[int, ...]
    by_hour: Tuple[int, ...]
    most_productive_day: Optional[str]
    peak_day_count: int
    most_productive_hour: Optional[int]
    peak_hour_count: int


@dataclass(frozen=True)
class DailyProgress:
    current: int
    goal: int
    percentage: float
    is_complete: bool


@dataclass(frozen=True)
class StatsSnapshot:
    total_pomodoros: int
    total_interrupted: int
    total_minutes: int
    completion_rate: int
    today: DayStats
    this_week: Tuple[DayStats, ...]
    by_project: Tuple[ProjectStats, ...]
    current_streak: int
    longest_streak: int
    estimate_accuracy: int
    tasks_completed: int
    avg_pomodoro_length: int
    avg_pomodoro_length_week: int
    insights: Insights


# ── Public API ──────────────────────────────────────────────────────────────

def compute_stats(
    sessions: Sequence[Session],
    tasks: Sequence[Task],
    projects: Sequence[Project],
    options: Optional[StatsOptions] = None,
    clock: Clock = system_clock,
) -> StatsSnapshot:
    """Aggregate the full history into display-ready statistics."""
    options = options or StatsOptions()
    today = ms_to_datetime(clock()).date()

    completed = [s for s in sessions if not s.interrupted]
    total_interrupted = len(sessions) - len(completed)
    total = len(completed) + total_interrupted
    completion_rate = _round_half_up(100 * len(completed) / total) if total else 100

    daily = _daily_totals(sessions)
    this_week = tuple(
        daily.get(day, DayStats(date=day))
        for day in (today - timedelta(days=offset) for offset in range(WEEK_DAYS - 1, -1, -1))
    )

    week_start = today - timedelta(days=WEEK_DAYS - 1)
    recent = [s for s in completed if s.completed_at.date() >= week_start]

    active_days = _active_days(completed, options.exclude_weekends_from_streak)
    done_tasks = [t for t in tasks if t.completed]

    return StatsSnapshot(
        total_pomodoros=len(completed),
        total_interrupted=total_interrupted,
        total_minutes=sum(s.duration_minutes for s in completed),
        completion_rate=completion_rate,
        today=this_week[-1],
        this_week=this_week,
        by_project=_by_project(completed, tasks, projects),
        current_streak=_current_streak(active_days, today, options.exclude_weekends_from_streak),
        longest_streak=_longest_streak(active_days, options.exclude_weekends_from_streak),
        estimate_accuracy=_estimate_accuracy(done_tasks),
        tasks_completed=len(done_tasks),
        avg_pomodoro_length=_mean_minutes(completed),
        avg_pomodoro_length_week=_mean_minutes(recent),
        insights=_insights(completed),
    )


def daily_progress(current: int, goal: int) -> DailyProgress:
    """Progress toward the daily pomodoro goal, capped at 100%."""
    if goal <= 0:
        return DailyProgress(current, goal, 100.0, True)
    return DailyProgress(
        current=current,
        goal=goal,
        percentage=min(current / goal * 100, 100.0),
        is_complete=current >= goal,
    )


def render_summary(stats: StatsSnapshot, goal: Optional[int] = None) -> str:
    """Plain-text report for the tray's Statistics dialog."""
    lines = [
        f"Today: {stats.today.completed} pomodoros ({format_duration(stats.today.total_minutes)})",
    ]
    if goal is not None:
        progress = daily_progress(stats.today.completed, goal)
        lines.append(f"Daily goal: {progress.current}/{progress.goal}"
                     + (" 🎉" if progress.is_complete else ""))
    lines += [
        f"All time: {stats.total_pomodoros} pomodoros, {format_duration(stats.total_minutes)}",
        f"Completion rate: {stats.completion_rate}%",
        f"Streak: {stats.current_streak} days (longest {stats.longest_streak})",
        f"Average length: {stats.avg_pomodoro_length}m (last 7 days {stats.avg_pomodoro_length_week}m)",
        f"Estimate accuracy: {stats.estimate_accuracy}%",
        "",
        "Last 7 days:",
    ]
    for day in stats.this_week:
        lines.append(f"  {DAY_NAMES[day.date.weekday()][:3]} {day.date.isoformat()}  "
                     f"{day.completed:>2}  {format_duration(day.total_minutes)}")
    if stats.by_project:
        lines += ["", "By project:"]
        for p in stats.by_project:
            lines.append(f"  {p.project_name}: {p.pomodoros} ({format_duration(p.total_minutes)})")
    ins = stats.insights
    if ins.most_productive_day is not None:
        lines += [
            "",
            f"Most productive day: {ins.most_productive_day} ({ins.peak_day_count})",
            f"Most productive hour: {ins.most_productive_hour:02d}:00 ({ins.peak_hour_count})",
        ]
    return "\n".join(lines)


# ── Helpers ─────────────────────────────────────────────────────────────────

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _daily_totals(sessions: Iterable[Session]) -> Dict[date, DayStats]:
    counts: Dict[date, List[int]] = {}
    for s in sessions:
        bucket = counts.setdefault(s.completed_at.date(), [0, 0, 0])
        if s.interrupted:
            bucket[1] += 1
        else:
            bucket[0] += 1
            bucket[2] += s.duration_minutes
    return {day: DayStats(day, c, i, m) for day, (c, i, m) in counts.items()}


def _by_project(completed: List[Session], tasks: Sequence[Task],
                projects: Sequence[Project]) -> Tuple[ProjectStats, ...]:
    """Roll completed sessions up by project, in project-list order."""
    task_project = {t.id: t.project_id for t in tasks}
    known = {p.id for p in projects}

    totals: Dict[Optional[int], List[int]] = {}
    for s in completed:
        project_id = task_project.get(s.task_id)
        if project_id not in known:
            project_id = None
        bucket = totals.setdefault(project_id, [0, 0])
        bucket[0] += 1
        bucket[1] += s.duration_minutes

    rollup = [
        ProjectStats(p.id, p.name, p.color, *totals[p.id])
        for p in projects if p.id in totals
    ]
    if None in totals:
        rollup.append(ProjectStats(None, NO_PROJECT, None, *totals[None]))
    return tuple(rollup)


def _active_days(completed: Iterable[Session], exclude_weekends: bool) -> Set[date]:
    days = {s.completed_at.date() for s in completed}
    if exclude_weekends:
        days = {d for d in days if d.weekday() < 5}
    return days


def _previous_day(day: date, exclude_weekends: bool) -> date:
    day -= timedelta(days=1)
    while exclude_weekends and day.weekday() >= 5:
        day -= timedelta(days=1)
    return day


def _current_streak(days: Set[date], today: date, exclude_weekends: bool) -> int:
    """
    Consecutive active days ending today, or ending yesterday while today
    has no session yet. With weekends excluded, a weekend "today" counts
    back from Friday, which must itself be active.
    """
    if exclude_weekends and today.weekday() >= 5:
        cursor = _previous_day(today, True)
    elif today in days:
        cursor = today
    else:
        cursor = _previous_day(today, exclude_weekends)

    streak = 0
    while cursor in days:
        streak += 1
        cursor = _previous_day(cursor, exclude_weekends)
    return streak


def _longest_streak(days: Set[date], exclude_weekends: bool) -> int:
    longest = run = 0
    previous: Optional[date] = None
    for day in sorted(days):
        if previous is not None and _previous_day(day, exclude_weekends) == previous:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def _estimate_accuracy(done_tasks: List[Task]) -> int:
    estimated = sum(t.estimated_pomodoros for t in done_tasks)
    actual = sum(t.actual_pomodoros for t in done_tasks)
    if actual == 0:
        return 100
    return _round_half_up(100 * estimated / actual)


def _mean_minutes(sessions: List[Session]) -> int:
    if not sessions:
        return 0
    minutes = np.array([s.duration_minutes for s in sessions], dtype=float)
    return _round_half_up(float(minutes.mean()))


def _insights(completed: List[Session]) -> Insights:
    weekdays = np.array([s.started_at.weekday() for s in completed], dtype=int)
    hours = np.array([s.started_at.hour for s in completed], dtype=int)
    by_day = np.bincount(weekdays, minlength=7)
    by_hour = np.bincount(hours, minlength=24)

    if not completed:
        return Insights(tuple(by_day.tolist()), tuple(by_hour.tolist()), None, 0, None, 0)

    # argmax returns the first maximum, so ties go to the lowest bucket
    peak_day = int(np.argmax(by_day))
    peak_hour = int(np.argmax(by_hour))
    return Insights(
        by_day_of_week=tuple(by_day.tolist()),
        by_hour=tuple(by_hour.tolist()),
        most_productive_day=DAY_NAMES[peak_day],
        peak_day_count=int(by_day[peak_day]),
        most_productive_hour=peak_hour,
        peak_hour_count=int(by_hour[peak_hour]),
    )


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Turns a flat list of recorded sessions into everything the stats view
#   shows: totals, today, the last 7 days, per-project rollups, streaks,
#   estimate accuracy, average lengths and "when am I productive" insights.
#
# Key design decisions:
#   - Pure function over a snapshot: no state, no locks, trivially testable
#     with an injected clock.
#   - Actual minutes everywhere: a 90-minute flow session counts as 90
#     minutes, not "one pomodoro = 25 minutes".
#   - Weekend-excluding streaks: Saturday/Sunday simply don't exist on the
#     streak calendar, so Friday → Monday is "consecutive", while a missing
#     Tuesday still breaks the run.
#   - numpy.bincount builds the 7- and 24-bucket histograms in one call, and
#     numpy.argmax's first-maximum rule gives a deterministic tie-break.
#
# Interviewer-friendly talking points:
#   1. Empty-history defaults are explicit: completion rate 100, accuracy
#      100, averages 0, insights None. The UI never divides by zero.
#   2. Python's round() is banker's rounding (round(12.5) == 12). Users
#      expect 13, hence _round_half_up.
#   3. Project order follows the project list, with "No Project" last, so
#      the chart doesn't reshuffle every time one project overtakes another.
