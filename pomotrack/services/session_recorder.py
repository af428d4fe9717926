"""
Session Recorder — turns a finished timer run into a stored Session.

Handles: writing the immutable session row and crediting the attributed task
with exactly one pomodoro when the run was not interrupted.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from pomotrack.data.models import CompletedRun, Session, TimerMode
from pomotrack.data.repository import Repository
from pomotrack.services.clock import Clock, ms_to_datetime, system_clock

logger = logging.getLogger(__name__)


class RecordingError(RuntimeError):
    """The Session Store rejected a write. Not retried."""


class SessionRecorder:
    """
    Persists timer runs to the Session Store.

    Only work runs become sessions; a finished break is not a pomodoro.
    """

    def __init__(self, repo: Repository, clock: Clock = system_clock) -> None:
        self.repo = repo
        self.clock = clock
        self.active_task_id: Optional[int] = None

    def record(
        self,
        mode: TimerMode,
        interrupted: bool,
        duration_minutes: int,
        task_id: Optional[int] = None,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> Optional[Session]:
        """Append one session; credit *task_id* once if not interrupted."""
        if mode != TimerMode.WORK:
            logger.debug("Not recording finished %s run.", mode.value)
            return None

        completed_at = completed_at or ms_to_datetime(self.clock())
        session = Session(
            task_id=task_id,
            duration_minutes=max(0, int(duration_minutes)),
            started_at=started_at or completed_at,
            completed_at=completed_at,
            interrupted=interrupted,
        )
        try:
            stored = self.repo.append_session(session, credit_task=not interrupted)
        except sqlite3.Error as e:
            logger.error("Could not record session: %s", e)
            raise RecordingError(f"Session could not be saved: {e}") from e

        logger.info(
            "Recorded session %d (%d min, %s)%s",
            stored.id, stored.duration_minutes,
            "interrupted" if interrupted else "completed",
            f" for task {task_id}" if task_id is not None else "",
        )
        return stored

    def handle_completion(self, run: CompletedRun) -> Optional[Session]:
        """Timer callback: record *run* against the active task."""
        return self.record(
            run.mode,
            run.interrupted,
            run.duration_minutes,
            task_id=self.active_task_id,
            started_at=ms_to_datetime(run.started_at_ms),
            completed_at=ms_to_datetime(run.completed_at_ms),
        )


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Bridges the timer (which only knows about seconds and modes) and the
#   store (which knows about rows and task ids).
#
# Key design decisions:
#   - "One run, one increment": the task counter goes up by exactly 1 no
#     matter how long a flow session ran. Minutes live on the session row.
#   - Failures become RecordingError and go back to the caller. Retrying is
#     the store's business, not the recorder's: a blind retry here could
#     double-count a pomodoro whose first write actually succeeded.
#
# Data flow:
#   TimerService finishes a run → CompletedRun → handle_completion() →
#   Repository.append_session() (+ increment_task_actual) → Session.
