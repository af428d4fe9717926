"""
Timer Service — the Pomodoro state machine.

Owns the mode, the running state and the session counter. Supports the
classic countdown and the count-up "flow" variant of the work phase.
All displayed times are re-derived from absolute anchors on every
observation, so a suspended event loop catches up in one tick instead of
drifting.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Union

from pomotrack.alerts.messages import build_completion_message
from pomotrack.data.models import CompletedRun, Settings, TimerMode
from pomotrack.services.clock import Clock, system_clock
from pomotrack.services.durations import duration_seconds
from pomotrack.services.session_recorder import RecordingError

logger = logging.getLogger(__name__)


# ── Run state: exactly one of these at a time ──────────────────────────────

@dataclass(frozen=True)
class Idle:
    """Not running. The frozen remainder lives in TimerService.time_left."""


@dataclass(frozen=True)
class RunningCountdown:
    end_time: int  # epoch ms deadline


@dataclass(frozen=True)
class RunningFlow:
    start_time: int  # epoch ms, work mode only


RunState = Union[Idle, RunningCountdown, RunningFlow]
IDLE = Idle()


@dataclass(frozen=True)
class TimerSnapshot:
    """Everything a view needs to render the timer at one instant."""
    mode: TimerMode
    is_running: bool
    session_count: int
    time_left: int
    elapsed: int
    is_flow_mode: bool
    display_time: int
    target_time: int
    is_over_target: bool
    progress: float


class TimerService:
    """
    Pomodoro state machine with countdown and flow sub-modes.

    States:
        Idle(mode) → RunningCountdown(end_time) | RunningFlow(start_time)

    Every operation is total: calling one that doesn't apply to the current
    state is a no-op, never an error.
    """

    def __init__(
        self,
        settings: Settings,
        clock: Clock = system_clock,
        on_complete: Optional[Callable[[CompletedRun], object]] = None,
        notifier=None,
        sound=None,
        on_run_state_changed: Optional[Callable[[bool], None]] = None,
        on_record_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self.settings = settings
        self.clock = clock

        # Collaborators
        self.on_complete = on_complete
        self.notifier = notifier
        self.sound = sound
        self.on_run_state_changed = on_run_state_changed
        self.on_record_error = on_record_error

        self.mode = TimerMode.WORK
        self.session_count = 0
        self.time_left = duration_seconds(TimerMode.WORK, settings)
        self.elapsed = 0

        self._run: RunState = IDLE
        self._phase_seconds = self.time_left
        self._run_started_at: Optional[int] = None
        self._completion_latched = False

    # ── Derived state ───────────────────────────────────────────────────────

    @property
    def run_state(self) -> RunState:
        return self._run

    @property
    def is_running(self) -> bool:
        return not isinstance(self._run, Idle)

    @property
    def is_flow_mode(self) -> bool:
        # A run keeps the sub-mode it was armed with until it goes idle
        if isinstance(self._run, RunningFlow):
            return True
        if isinstance(self._run, RunningCountdown):
            return False
        return self.settings.flow_mode_enabled and self.mode == TimerMode.WORK

    @property
    def end_time(self) -> Optional[int]:
        return self._run.end_time if isinstance(self._run, RunningCountdown) else None

    @property
    def start_time(self) -> Optional[int]:
        return self._run.start_time if isinstance(self._run, RunningFlow) else None

    def snapshot(self) -> TimerSnapshot:
        target = duration_seconds(TimerMode.WORK, self.settings)
        flow = self.is_flow_mode
        if flow:
            progress = min(100.0, self.elapsed / target * 100)
        elif self._phase_seconds > 0:
            progress = (self._phase_seconds - self.time_left) / self._phase_seconds * 100
        else:
            progress = 0.0
        return TimerSnapshot(
            mode=self.mode,
            is_running=self.is_running,
            session_count=self.session_count,
            time_left=self.time_left,
            elapsed=self.elapsed,
            is_flow_mode=flow,
            display_time=self.elapsed if flow else self.time_left,
            target_time=target,
            is_over_target=flow and self.elapsed >= target,
            progress=max(0.0, progress),
        )

    # ── User actions ────────────────────────────────────────────────────────

    def toggle(self) -> None:
        """Start, pause (countdown) or stop (flow) depending on state."""
        if self.sound is not None:
            self.sound.unlock()

        if isinstance(self._run, RunningFlow):
            self.stop_flow_session()
        elif isinstance(self._run, RunningCountdown):
            self.time_left = self._remaining(self._run.end_time, self.clock())
            self._set_run(IDLE)
            self._cancel_notification()
            logger.info("Paused %s with %ds left.", self.mode.value, self.time_left)
        else:
            self._completion_latched = False
            self._arm(self.clock())
            logger.info("Started %s (%s).", self.mode.value,
                        "flow" if self.is_flow_mode else "countdown")

    def reset_timer(self, mode: TimerMode, auto_start: bool = False) -> None:
        """Stop whatever is running and load a fresh *mode* phase."""
        was_running = self.is_running
        self._completion_latched = False
        self._enter_mode(mode)
        if auto_start:
            self._arm(self.clock())
        else:
            self._set_run(IDLE)
        if was_running:
            self._cancel_notification()

    def change_mode(self, mode: TimerMode) -> None:
        """Switching mode always discards a run in progress."""
        self.reset_timer(mode)

    def interrupt(self) -> None:
        """Abandon the current work run (recorded as interrupted) and reset."""
        run: Optional[CompletedRun] = None
        if self.mode == TimerMode.WORK and self.is_running:
            now = self.clock()
            if isinstance(self._run, RunningFlow):
                spent = self._elapsed_since(self._run.start_time, now)
            else:
                spent = self._phase_seconds - self._remaining(self._run.end_time, now)
            run = CompletedRun(
                mode=TimerMode.WORK,
                interrupted=True,
                elapsed_seconds=max(0, spent),
                started_at_ms=self._run_started_at or now,
                completed_at_ms=now,
            )
            logger.info("Interrupted work after %ds.", run.elapsed_seconds)
        self.reset_timer(self.mode)
        if run is not None:
            self._emit(run)

    def update_settings(self, settings: Settings) -> None:
        """
        Swap in new settings; an idle timer picks up the new duration.
        A running timer finishes its current run as countdown or flow.
        """
        old_duration = duration_seconds(self.mode, self.settings)
        self.settings = settings
        if not self.is_running and duration_seconds(self.mode, settings) != old_duration:
            self._enter_mode(self.mode)

    # ── Clock-driven transitions ────────────────────────────────────────────

    def tick(self) -> TimerSnapshot:
        """Recompute derived time from the anchors; complete if due."""
        now = self.clock()
        if isinstance(self._run, RunningFlow):
            self.elapsed = self._elapsed_since(self._run.start_time, now)
        elif isinstance(self._run, RunningCountdown):
            self.time_left = self._remaining(self._run.end_time, now)
            if self.time_left <= 0:
                self.complete_countdown()
        return self.snapshot()

    def resume_from_background(self) -> TimerSnapshot:
        """Single catch-up recomputation after the event loop was suspended."""
        return self.tick()

    def complete_countdown(self) -> None:
        """Handle a countdown reaching zero. Fires at most once per expiry."""
        if self._completion_latched or not isinstance(self._run, RunningCountdown):
            return
        now = self.clock()
        if self._remaining(self._run.end_time, now) > 0:
            return
        self._completion_latched = True

        finished = self.mode
        run = CompletedRun(
            mode=finished,
            interrupted=False,
            elapsed_seconds=self._phase_seconds,
            started_at_ms=self._run_started_at or now,
            completed_at_ms=now,
        )

        if finished == TimerMode.WORK:
            self.session_count += 1
            next_mode = self._next_break_mode()
            self._play("timer_complete")
        else:
            next_mode = TimerMode.WORK
            self._play("break_over")

        self._enter_mode(next_mode)
        if self.settings.auto_start_breaks:
            self._completion_latched = False
            self._arm(now)
        else:
            self._set_run(IDLE)

        logger.info("%s complete, next: %s.", finished.value, next_mode.value)
        self._notify(*build_completion_message(finished, next_mode))
        self._emit(run)

    def stop_flow_session(self) -> None:
        """
        End a flow run. Reaching the work target counts as a completed
        pomodoro; stopping short is an interruption, never partial credit.
        """
        if not isinstance(self._run, RunningFlow):
            return
        now = self.clock()
        started = self._run.start_time
        spent = self._elapsed_since(started, now)
        target = duration_seconds(TimerMode.WORK, self.settings)

        completed = spent >= target
        if completed:
            self.session_count += 1
            self._enter_mode(self._next_break_mode())
        else:
            self._enter_mode(TimerMode.WORK)
        self._set_run(IDLE)

        logger.info("Flow session stopped at %ds (target %ds): %s.", spent, target,
                    "completed" if completed else "interrupted")
        self._emit(CompletedRun(
            mode=TimerMode.WORK,
            interrupted=not completed,
            elapsed_seconds=spent,
            started_at_ms=started,
            completed_at_ms=now,
        ))

    # ── Internal ────────────────────────────────────────────────────────────

    def _arm(self, now: int) -> None:
        """Start running the current mode from *now*."""
        if self.is_flow_mode:
            self.elapsed = 0
            self._run_started_at = now
            self._set_run(RunningFlow(start_time=now))
        else:
            if self._run_started_at is None:
                self._run_started_at = now
            self._set_run(RunningCountdown(end_time=now + self.time_left * 1000))

    def _enter_mode(self, mode: TimerMode) -> None:
        self.mode = mode
        self.time_left = duration_seconds(mode, self.settings)
        self.elapsed = 0
        self._phase_seconds = self.time_left
        self._run_started_at = None

    def _set_run(self, run: RunState) -> None:
        if run == self._run:
            return
        self._run = run
        if self.on_run_state_changed is not None:
            self.on_run_state_changed(self.is_running)

    def _next_break_mode(self) -> TimerMode:
        if self.session_count % self.settings.long_break_interval == 0:
            return TimerMode.LONG_BREAK
        return TimerMode.SHORT_BREAK

    @staticmethod
    def _remaining(end_time: int, now: int) -> int:
        return max(0, math.ceil((end_time - now) / 1000))

    @staticmethod
    def _elapsed_since(start_time: int, now: int) -> int:
        return max(0, (now - start_time) // 1000)

    def _emit(self, run: CompletedRun) -> None:
        if self.on_complete is None:
            return
        try:
            self.on_complete(run)
        except RecordingError as e:
            logger.error("Run finished but was not saved: %s", e)
            if self.on_record_error is not None:
                self.on_record_error(e)

    def _notify(self, title: str, body: str) -> None:
        if self.notifier is None or not self.settings.notifications_enabled:
            return
        try:
            self.notifier.notify(title, body)
        except Exception as e:
            logger.warning("Notification failed: %s", e)

    def _cancel_notification(self) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.cancel()
        except Exception as e:
            logger.warning("Could not cancel notification: %s", e)

    def _play(self, sound_name: str) -> None:
        if self.sound is not None and self.settings.sound_enabled:
            self.sound.play(sound_name)


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The heart of the app: a state machine for one Pomodoro timer that can
#   count down (classic) or count up (flow mode, work phase only).
#
# Key design decisions:
#   - Anchors, not counters: we store the absolute deadline (countdown) or
#     start instant (flow) and derive time_left/elapsed from the clock on
#     every tick. If the OS suspends us for 10 minutes, the next tick is
#     simply correct. Decrementing a counter once per tick would drift.
#   - Tagged union for the run state: Idle | RunningCountdown |
#     RunningFlow. Both anchors can't be set at once because there is no
#     object that holds both.
#   - Completion latch: a periodic tick and a "window became visible"
#     recomputation can both observe the expired deadline. The latch makes
#     complete_countdown() fire once per expiry.
#   - Transition first, record second: _emit() runs after the state has
#     moved on, and a RecordingError is reported, not raised. A failed
#     database write never leaves the timer half-transitioned.
#   - Injected clock + settings: tests drive time by hand and swap settings
#     without touching any global.
#
# Data flow:
#   Tray click → toggle() → RunningCountdown(end_time) → QTimer tick() each
#   second → time_left hits 0 → complete_countdown() → next mode →
#   on_complete(CompletedRun) → SessionRecorder.
#
# Interviewer-friendly talking points:
#   1. Flow mode policy is asymmetric: reaching the target is a
#      pomodoro, stopping at 24:59 is an interruption.
#   2. Every operation is total. A stray click on "stop flow" while a
#      countdown is running is a no-op, not an exception.
#   3. ceil() for countdowns, floor() for count-ups: the display never
#      shows 00:00 while time remains, and never claims a second that
#      hasn't passed.
