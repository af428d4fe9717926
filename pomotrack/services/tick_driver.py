"""
Tick Driver — feeds the timer state machine from the Qt event loop.

A single QTimer fires once per second while the timer is running and is
stopped the moment it isn't. Ticks only trigger recomputation; the time
itself always comes from the timer's anchors.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QTimer

from pomotrack.services.timer_service import TimerService, TimerSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_MS = 1000


class TimerTicker:
    """
    Periodic driver for a TimerService.

    Uses a QTimer so callbacks run on the Qt event loop (safe for UI updates).
    """

    def __init__(
        self,
        timer: TimerService,
        interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        on_tick: Optional[Callable[[TimerSnapshot], None]] = None,
    ) -> None:
        self.timer = timer
        self.on_tick = on_tick
        self.tick_count = 0
        self._shut_down = False

        self._qtimer = QTimer()
        self._qtimer.setInterval(interval_ms)
        self._qtimer.timeout.connect(self._on_timeout)

        timer.on_run_state_changed = self._on_run_state_changed
        if timer.is_running:
            self._qtimer.start()

    @property
    def is_active(self) -> bool:
        return self._qtimer.isActive()

    def resume(self) -> TimerSnapshot:
        """Catch up once after the app returns to the foreground."""
        snap = self.timer.resume_from_background()
        self._deliver(snap)
        return snap

    def shutdown(self) -> None:
        self._shut_down = True
        self._qtimer.stop()
        self.timer.on_run_state_changed = None
        logger.info("Ticker stopped after %d ticks.", self.tick_count)

    # ── Internal ────────────────────────────────────────────────────────────

    def _on_run_state_changed(self, running: bool) -> None:
        if self._shut_down:
            return
        if running:
            self._qtimer.start()
        else:
            self._qtimer.stop()
        self._deliver(self.timer.snapshot())

    def _on_timeout(self) -> None:
        self.tick_count += 1
        self._deliver(self.timer.tick())

    def _deliver(self, snap: TimerSnapshot) -> None:
        if self.on_tick is not None:
            self.on_tick(snap)
