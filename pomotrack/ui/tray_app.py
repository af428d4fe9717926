"""
Tray App — the whole front end lives in the system tray.

Contains:
  - Tray icon coloured by mode, tooltip with the live clock
  - Menu: Start/Pause, Reset, Interrupt, mode switches, active task,
    flow mode toggle, Statistics, Export CSV, Quit
  - Wiring of database → repository → services → timer → ticker
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, Qt, Slot
from PySide6.QtGui import QColor, QGuiApplication, QIcon, QPainter, QPixmap
from PySide6.QtWidgets import QApplication, QMenu, QMessageBox, QSystemTrayIcon

from pomotrack.alerts.notifier import TrayNotifier
from pomotrack.alerts.sound_manager import SoundManager
from pomotrack.config import ConfigError, load_settings, save_settings
from pomotrack.data.database import Database
from pomotrack.data.models import CompletedRun, TimerMode
from pomotrack.data.repository import Repository
from pomotrack.services.durations import format_clock
from pomotrack.services.session_recorder import SessionRecorder
from pomotrack.services.stats_service import StatsOptions, compute_stats, render_summary
from pomotrack.services.task_service import TaskService
from pomotrack.services.tick_driver import TimerTicker
from pomotrack.services.timer_service import TimerService, TimerSnapshot

logger = logging.getLogger(__name__)

EXPORT_DIR = Path(__file__).resolve().parent.parent.parent / "exports"

MODE_LABELS = {
    TimerMode.WORK: "Focus",
    TimerMode.SHORT_BREAK: "Short Break",
    TimerMode.LONG_BREAK: "Long Break",
}
MODE_COLORS = {
    TimerMode.WORK: "#ef4444",
    TimerMode.SHORT_BREAK: "#22c55e",
    TimerMode.LONG_BREAK: "#3b82f6",
}


def make_mode_icon(mode: TimerMode, size: int = 64) -> QIcon:
    """A filled circle in the mode's colour."""
    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.GlobalColor.transparent)
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setPen(Qt.PenStyle.NoPen)
    painter.setBrush(QColor(MODE_COLORS[mode]))
    painter.drawEllipse(4, 4, size - 8, size - 8)
    painter.end()
    return QIcon(pixmap)


class TrayController(QObject):
    """Owns every service and exposes them through the tray menu."""

    def __init__(self, db_path: Optional[Path] = None,
                 settings_path: Optional[Path] = None, parent=None) -> None:
        super().__init__(parent)

        # ── Initialize core systems ─────────────────────────────────────
        self.settings_path = settings_path
        self.settings = load_settings(settings_path)
        self.db = Database(db_path)
        self.db.connect()
        self.repo = Repository(self.db.conn)
        self.recorder = SessionRecorder(self.repo)
        self.task_svc = TaskService(self.repo, self.recorder)
        self.sound = SoundManager(self.settings.sound_enabled, self.settings.sound_volume)

        # ── System tray ────────────────────────────────────────────────
        self.tray = QSystemTrayIcon(make_mode_icon(TimerMode.WORK), self)
        self.notifier = TrayNotifier(self.tray)

        # ── Timer + ticker ──────────────────────────────────────────────
        self.timer = TimerService(
            self.settings,
            on_complete=self._on_run_finished,
            notifier=self.notifier,
            sound=self.sound,
            on_record_error=self._on_record_error,
        )
        self.ticker = TimerTicker(self.timer, on_tick=self._render)

        self._shown_mode: Optional[TimerMode] = None
        self._build_menu()
        self._render(self.timer.snapshot())

        app = QGuiApplication.instance()
        if app is not None:
            app.applicationStateChanged.connect(self._on_app_state_changed)

        self.tray.show()
        logger.info("Tray controller ready.")

    # ── Menu construction ───────────────────────────────────────────────

    def _build_menu(self) -> None:
        self.menu = QMenu()

        self.toggle_action = self.menu.addAction("Start")
        self.toggle_action.triggered.connect(self._on_toggle)
        self.menu.addAction("Reset").triggered.connect(self._on_reset)
        self.interrupt_action = self.menu.addAction("Interrupt")
        self.interrupt_action.triggered.connect(self._on_interrupt)
        self.menu.addSeparator()

        for mode in TimerMode:
            action = self.menu.addAction(MODE_LABELS[mode])
            action.triggered.connect(lambda _=False, m=mode: self._on_change_mode(m))

        self.flow_action = self.menu.addAction("Flow Mode")
        self.flow_action.setCheckable(True)
        self.flow_action.setChecked(self.settings.flow_mode_enabled)
        self.flow_action.toggled.connect(self._on_flow_toggled)
        self.menu.addSeparator()

        self.task_menu = self.menu.addMenu("Active Task")
        self.task_menu.aboutToShow.connect(self._populate_task_menu)
        self.menu.addAction("Statistics").triggered.connect(self._on_show_stats)
        self.menu.addAction("Export CSV").triggered.connect(self._on_export_csv)
        self.menu.addSeparator()
        self.menu.addAction("Quit").triggered.connect(self._quit_app)

        self.tray.setContextMenu(self.menu)
        self.tray.activated.connect(self._on_tray_activated)

    @Slot()
    def _populate_task_menu(self) -> None:
        self.task_menu.clear()
        active = self.task_svc.active_task
        none_action = self.task_menu.addAction("No task")
        none_action.setCheckable(True)
        none_action.setChecked(active is None)
        none_action.triggered.connect(lambda _=False: self._on_select_task(None))

        for task in self.task_svc.list_tasks(include_completed=False):
            label = f"{task.title} ({task.actual_pomodoros}/{task.estimated_pomodoros})"
            action = self.task_menu.addAction(label)
            action.setCheckable(True)
            action.setChecked(active is not None and active.id == task.id)
            action.triggered.connect(lambda _=False, tid=task.id: self._on_select_task(tid))

    # ── Rendering ───────────────────────────────────────────────────────

    def _render(self, snap: TimerSnapshot) -> None:
        label = MODE_LABELS[snap.mode]
        clock = format_clock(snap.display_time)
        if snap.is_flow_mode and snap.is_over_target:
            clock += " (target reached)"
        self.tray.setToolTip(f"{label} · {clock} · #{snap.session_count}")

        if not snap.is_running:
            self.toggle_action.setText("Start")
        else:
            self.toggle_action.setText("Stop" if snap.is_flow_mode else "Pause")
        self.interrupt_action.setEnabled(snap.is_running and snap.mode == TimerMode.WORK)

        if snap.mode != self._shown_mode:
            self.tray.setIcon(make_mode_icon(snap.mode))
            self._shown_mode = snap.mode

    # ── Timer callbacks ─────────────────────────────────────────────────

    def _on_run_finished(self, run: CompletedRun) -> None:
        self.recorder.handle_completion(run)

    def _on_record_error(self, exc: Exception) -> None:
        self.tray.showMessage(
            "Session not saved",
            str(exc),
            QSystemTrayIcon.MessageIcon.Warning,
            self.notifier.timeout_ms,
        )

    # ── Menu actions ────────────────────────────────────────────────────

    @Slot()
    def _on_toggle(self) -> None:
        self.timer.toggle()
        self._render(self.timer.snapshot())

    @Slot()
    def _on_reset(self) -> None:
        self.timer.reset_timer(self.timer.mode)
        self._render(self.timer.snapshot())

    @Slot()
    def _on_interrupt(self) -> None:
        self.timer.interrupt()
        self._render(self.timer.snapshot())

    def _on_change_mode(self, mode: TimerMode) -> None:
        self.timer.change_mode(mode)
        self._render(self.timer.snapshot())

    def _on_select_task(self, task_id: Optional[int]) -> None:
        try:
            self.task_svc.set_active_task(task_id)
        except RuntimeError as e:
            QMessageBox.warning(None, "Task", str(e))

    @Slot(bool)
    def _on_flow_toggled(self, enabled: bool) -> None:
        self._apply_settings(replace(self.settings, flow_mode_enabled=enabled))

    def _apply_settings(self, settings) -> None:
        try:
            save_settings(settings, self.settings_path)
        except (ConfigError, OSError) as e:
            logger.error("Settings not saved: %s", e)
            QMessageBox.warning(None, "Settings", f"Could not save settings:\n{e}")
            self._sync_flow_action()
            return
        self.settings = settings
        self.timer.update_settings(settings)
        self.sound.set_enabled(settings.sound_enabled)
        self.sound.set_volume(settings.sound_volume)
        self._render(self.timer.snapshot())

    def _sync_flow_action(self) -> None:
        """Show the applied flow setting without re-triggering a save."""
        self.flow_action.blockSignals(True)
        self.flow_action.setChecked(self.settings.flow_mode_enabled)
        self.flow_action.blockSignals(False)

    @Slot()
    def _on_show_stats(self) -> None:
        stats = compute_stats(
            self.repo.list_sessions(),
            self.repo.list_tasks(),
            self.repo.list_projects(),
            StatsOptions(self.settings.exclude_weekends_from_streak),
        )
        QMessageBox.information(None, "Statistics",
                                render_summary(stats, self.settings.daily_goal))

    @Slot()
    def _on_export_csv(self) -> None:
        data = self.repo.export_sessions_csv()
        if not data:
            QMessageBox.information(None, "Export CSV", "No sessions recorded yet.")
            return
        EXPORT_DIR.mkdir(parents=True, exist_ok=True)
        path = EXPORT_DIR / f"pomotrack-sessions-{date.today().isoformat()}.csv"
        path.write_text(data, encoding="utf-8")
        logger.info("Exported sessions to %s", path)
        QMessageBox.information(None, "Export CSV", f"Sessions exported to:\n{path}")

    # ── App lifecycle ───────────────────────────────────────────────────

    def _on_app_state_changed(self, state) -> None:
        if state == Qt.ApplicationState.ApplicationActive:
            self.ticker.resume()

    def _on_tray_activated(self, reason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            self.ticker.resume()

    def _quit_app(self) -> None:
        if self.timer.is_running and self.timer.mode == TimerMode.WORK:
            reply = QMessageBox.question(
                None, "Timer Running",
                "A focus session is running!\n\n"
                "Record it as interrupted and quit?",
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            )
            if reply != QMessageBox.StandardButton.Yes:
                return
            self.timer.interrupt()

        self.ticker.shutdown()
        self.tray.hide()
        self.db.close()
        QApplication.quit()


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The whole UI: a tray icon whose colour shows the mode and whose tooltip
#   shows the clock, plus a context menu for every timer action.
#
# Key design decisions:
#   - The controller only wires things together. Every rule (what toggle
#     means in flow mode, which break comes next, what counts as a pomodoro)
#     lives in the services, which run without Qt in the tests.
#   - applicationStateChanged(ApplicationActive) triggers one catch-up
#     recomputation, so the clock is right the moment the user looks.
#   - Record failures surface as a warning balloon. The timer has already
#     moved on by then.
