"""Unit tests for the timer state machine."""

import pytest
from dataclasses import replace

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pomotrack.data.models import Settings, TimerMode
from pomotrack.services.session_recorder import RecordingError
from pomotrack.services.timer_service import (
    Idle, RunningCountdown, RunningFlow, TimerService,
)


class FakeClock:
    """Hand-driven epoch-ms clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(round(seconds * 1000))


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.messages = []
        self.cancelled = 0
        self.fail = fail

    def notify(self, title, body):
        if self.fail:
            raise OSError("notification daemon gone")
        self.messages.append((title, body))

    def cancel(self):
        self.cancelled += 1


class FakeSound:
    def __init__(self) -> None:
        self.unlocked = 0
        self.played = []

    def unlock(self):
        self.unlocked += 1

    def play(self, name):
        self.played.append(name)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runs():
    return []


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def sound():
    return FakeSound()


def make_timer(clock, runs, notifier=None, sound=None, **overrides):
    return TimerService(
        replace(Settings(), **overrides),
        clock=clock,
        on_complete=runs.append,
        notifier=notifier,
        sound=sound,
    )


def finish_phase(timer, clock):
    """Start the current countdown and let it run out."""
    timer.toggle()
    clock.advance(timer.time_left)
    timer.tick()


class TestCountdown:
    def test_initial_state(self, clock, runs):
        timer = make_timer(clock, runs)
        assert timer.mode == TimerMode.WORK
        assert timer.time_left == 1500
        assert timer.session_count == 0
        assert isinstance(timer.run_state, Idle)
        assert not timer.is_running

    def test_start_sets_deadline(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        assert isinstance(timer.run_state, RunningCountdown)
        assert timer.end_time == clock.now + 1500 * 1000
        assert timer.start_time is None

    def test_time_left_rounds_up(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(0.5)
        assert timer.tick().time_left == 1500
        clock.advance(1.0)
        assert timer.tick().time_left == 1499

    def test_pause_freezes_remaining(self, clock, runs, notifier):
        timer = make_timer(clock, runs, notifier)
        timer.toggle()
        clock.advance(10.2)
        timer.toggle()
        assert timer.time_left == 1490
        assert not timer.is_running
        assert timer.end_time is None
        assert notifier.cancelled == 1

        clock.advance(100)
        assert timer.tick().time_left == 1490

    def test_resume_after_pause(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(10)
        timer.toggle()
        clock.advance(60)
        timer.toggle()
        assert timer.end_time == clock.now + 1490 * 1000

    def test_progress(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(150)
        snap = timer.tick()
        assert snap.progress == pytest.approx(10.0)
        assert snap.display_time == 1350
        assert not snap.is_flow_mode


class TestCompletion:
    def test_work_completion(self, clock, runs, notifier, sound):
        timer = make_timer(clock, runs, notifier, sound)
        finish_phase(timer, clock)

        assert timer.session_count == 1
        assert timer.mode == TimerMode.SHORT_BREAK
        assert timer.time_left == 300
        assert not timer.is_running
        assert len(runs) == 1
        run = runs[0]
        assert run.mode == TimerMode.WORK
        assert run.interrupted is False
        assert run.elapsed_seconds == 1500
        assert run.duration_minutes == 25
        assert notifier.messages == [("Pomodoro Complete! 🍅", "Time for a short break!")]
        assert sound.played == ["timer_complete"]
        assert sound.unlocked == 1

    def test_break_completion_returns_to_work(self, clock, runs, notifier, sound):
        timer = make_timer(clock, runs, notifier, sound)
        finish_phase(timer, clock)
        finish_phase(timer, clock)

        assert timer.mode == TimerMode.WORK
        assert timer.time_left == 1500
        assert timer.elapsed == 0
        assert timer.session_count == 1
        assert notifier.messages[-1] == ("Break Over!", "Ready to focus again?")
        assert sound.played[-1] == "break_over"
        assert runs[-1].mode == TimerMode.SHORT_BREAK

    def test_completion_fires_once_per_expiry(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(1500)
        timer.tick()
        timer.resume_from_background()
        timer.complete_countdown()
        assert len(runs) == 1
        assert timer.session_count == 1

    def test_latch_holds_with_auto_start(self, clock, runs):
        timer = make_timer(clock, runs, auto_start_breaks=True)
        finish_phase(timer, clock)
        assert timer.is_running
        assert timer.mode == TimerMode.SHORT_BREAK

        timer.complete_countdown()
        timer.tick()
        assert len(runs) == 1
        assert timer.mode == TimerMode.SHORT_BREAK

    def test_complete_before_deadline_is_noop(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(10)
        timer.complete_countdown()
        assert runs == []
        assert timer.mode == TimerMode.WORK

    def test_long_break_every_interval(self, clock, runs):
        timer = make_timer(clock, runs, long_break_interval=4)
        breaks = []
        for _ in range(8):
            finish_phase(timer, clock)   # work
            breaks.append(timer.mode)
            finish_phase(timer, clock)   # break
        assert breaks == [
            TimerMode.SHORT_BREAK, TimerMode.SHORT_BREAK, TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK,
            TimerMode.SHORT_BREAK, TimerMode.SHORT_BREAK, TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK,
        ]
        assert timer.session_count == 8

    def test_long_break_message(self, clock, runs, notifier):
        timer = make_timer(clock, runs, notifier, long_break_interval=1)
        finish_phase(timer, clock)
        assert timer.mode == TimerMode.LONG_BREAK
        assert timer.time_left == 900
        assert notifier.messages[-1][1] == "Time for a long break!"

    def test_auto_start_arms_next_phase(self, clock, runs):
        timer = make_timer(clock, runs, auto_start_breaks=True)
        finish_phase(timer, clock)
        assert isinstance(timer.run_state, RunningCountdown)
        assert timer.end_time == clock.now + 300 * 1000

        clock.advance(300)
        timer.tick()
        assert timer.mode == TimerMode.WORK
        assert timer.is_running

    def test_suspended_loop_catches_up_once(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(3600)
        snap = timer.resume_from_background()
        assert len(runs) == 1
        assert snap.mode == TimerMode.SHORT_BREAK
        assert snap.time_left == 300
        assert not snap.is_running

    def test_notifications_and_sound_respect_settings(self, clock, runs, notifier, sound):
        timer = make_timer(clock, runs, notifier, sound,
                           notifications_enabled=False, sound_enabled=False)
        finish_phase(timer, clock)
        assert notifier.messages == []
        assert sound.played == []
        assert timer.session_count == 1

    def test_notifier_failure_does_not_block_transition(self, clock, runs):
        timer = make_timer(clock, runs, FakeNotifier(fail=True))
        finish_phase(timer, clock)
        assert timer.mode == TimerMode.SHORT_BREAK
        assert len(runs) == 1


class TestFlowMode:
    def test_start_anchors_flow(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.toggle()
        assert isinstance(timer.run_state, RunningFlow)
        assert timer.start_time == clock.now
        assert timer.end_time is None

    def test_elapsed_rounds_down(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.toggle()
        clock.advance(61.9)
        snap = timer.tick()
        assert snap.elapsed == 61
        assert snap.display_time == 61
        assert snap.is_flow_mode
        assert snap.progress == pytest.approx(61 / 1500 * 100)

    def test_tick_never_completes_flow(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.toggle()
        clock.advance(5000)
        snap = timer.tick()
        assert snap.is_running
        assert snap.is_over_target
        assert snap.progress == 100.0
        assert runs == []

    def test_stop_after_target_counts(self, clock, runs, notifier):
        timer = make_timer(clock, runs, notifier, flow_mode_enabled=True)
        timer.toggle()
        clock.advance(1800)
        timer.toggle()

        assert timer.session_count == 1
        assert timer.mode == TimerMode.SHORT_BREAK
        assert not timer.is_running
        assert len(runs) == 1
        assert runs[0].interrupted is False
        assert runs[0].duration_minutes == 30
        assert notifier.messages == []

    def test_stop_short_is_interrupted(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.toggle()
        clock.advance(600)
        timer.stop_flow_session()

        assert timer.session_count == 0
        assert timer.mode == TimerMode.WORK
        assert timer.elapsed == 0
        assert runs[0].interrupted is True
        assert runs[0].elapsed_seconds == 600

    def test_flow_completion_picks_long_break(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True, long_break_interval=1)
        timer.toggle()
        clock.advance(1500)
        timer.toggle()
        assert timer.mode == TimerMode.LONG_BREAK

    def test_breaks_always_count_down(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.change_mode(TimerMode.SHORT_BREAK)
        assert not timer.is_flow_mode
        timer.toggle()
        assert isinstance(timer.run_state, RunningCountdown)

    def test_stop_flow_outside_flow_is_noop(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        timer.stop_flow_session()
        assert isinstance(timer.run_state, RunningCountdown)
        assert runs == []

    def test_clock_going_backwards_clamps(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.toggle()
        clock.advance(-5)
        assert timer.tick().elapsed == 0


class TestInterruptAndReset:
    def test_interrupt_countdown_records(self, clock, runs, notifier):
        timer = make_timer(clock, runs, notifier)
        timer.toggle()
        clock.advance(600)
        timer.interrupt()

        assert len(runs) == 1
        assert runs[0].interrupted is True
        assert runs[0].elapsed_seconds == 600
        assert runs[0].duration_minutes == 10
        assert timer.mode == TimerMode.WORK
        assert timer.time_left == 1500
        assert not timer.is_running
        assert timer.session_count == 0
        assert notifier.cancelled == 1

    def test_interrupt_counts_time_across_pauses(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(300)
        timer.toggle()
        clock.advance(1000)
        timer.toggle()
        clock.advance(300)
        timer.interrupt()
        assert runs[0].elapsed_seconds == 600

    def test_interrupt_break_not_recorded(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.change_mode(TimerMode.SHORT_BREAK)
        timer.toggle()
        clock.advance(60)
        timer.interrupt()
        assert runs == []
        assert timer.time_left == 300
        assert not timer.is_running

    def test_interrupt_when_idle_not_recorded(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.interrupt()
        assert runs == []

    def test_change_mode_discards_run(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(100)
        timer.change_mode(TimerMode.LONG_BREAK)
        assert runs == []
        assert timer.mode == TimerMode.LONG_BREAK
        assert timer.time_left == 900
        assert not timer.is_running

    def test_reset_with_auto_start(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.reset_timer(TimerMode.SHORT_BREAK, auto_start=True)
        assert timer.is_running
        assert timer.end_time == clock.now + 300 * 1000

    def test_run_state_callback(self, clock, runs):
        changes = []
        timer = make_timer(clock, runs)
        timer.on_run_state_changed = changes.append
        timer.toggle()
        timer.toggle()
        timer.reset_timer(TimerMode.WORK)
        assert changes == [True, False]


class TestSettingsAndErrors:
    def test_update_settings_while_idle(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.update_settings(replace(Settings(), work_duration_minutes=50))
        assert timer.time_left == 3000
        assert timer.snapshot().target_time == 3000

    def test_update_settings_while_running(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        deadline = timer.end_time
        timer.update_settings(replace(Settings(), work_duration_minutes=50))
        assert timer.end_time == deadline
        assert timer.time_left == 1500

    def test_enabling_flow_while_idle(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.update_settings(replace(Settings(), flow_mode_enabled=True))
        assert timer.is_flow_mode
        timer.toggle()
        assert isinstance(timer.run_state, RunningFlow)

    def test_disabling_flow_mid_run_keeps_flow(self, clock, runs):
        timer = make_timer(clock, runs, flow_mode_enabled=True)
        timer.toggle()
        clock.advance(600)
        timer.update_settings(Settings(flow_mode_enabled=False))
        snap = timer.tick()
        assert snap.is_running
        assert snap.is_flow_mode
        assert snap.display_time == 600

        timer.toggle()
        assert runs[0].interrupted is True
        assert runs[0].elapsed_seconds == 600
        assert not timer.is_running
        assert not timer.is_flow_mode
        assert timer.snapshot().display_time == 1500

    def test_enabling_flow_mid_countdown_keeps_countdown(self, clock, runs):
        timer = make_timer(clock, runs)
        timer.toggle()
        clock.advance(100)
        timer.update_settings(Settings(flow_mode_enabled=True))
        snap = timer.tick()
        assert not snap.is_flow_mode
        assert snap.display_time == 1400
        assert isinstance(timer.run_state, RunningCountdown)

        timer.toggle()
        assert not timer.is_running
        assert timer.time_left == 1400
        assert timer.is_flow_mode

    def test_recording_error_reported_after_transition(self, clock):
        errors = []

        def failing_recorder(run):
            raise RecordingError("disk full")

        timer = TimerService(Settings(), clock=clock, on_complete=failing_recorder,
                             on_record_error=errors.append)
        finish_phase(timer, clock)
        assert timer.mode == TimerMode.SHORT_BREAK
        assert timer.session_count == 1
        assert len(errors) == 1
        assert "disk full" in str(errors[0])
