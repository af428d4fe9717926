"""
Task Service — tasks, projects and the "currently working on" task.

Handles: task/project CRUD on top of the Repository, and keeping the
active task in sync with the SessionRecorder so finished pomodoros are
credited to the right task.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional

from pomotrack.data.models import Project, Task
from pomotrack.data.repository import Repository
from pomotrack.services.clock import Clock, ms_to_datetime, system_clock
from pomotrack.services.session_recorder import SessionRecorder

logger = logging.getLogger(__name__)


class TaskService:
    """
    Manages tasks and projects.

    At most ONE task is active at a time. Completing or deleting it clears
    the selection; later pomodoros are then recorded without a task.
    """

    def __init__(self, repo: Repository, recorder: Optional[SessionRecorder] = None) -> None:
        self.repo = repo
        self.recorder = recorder
        self._active_task_id: Optional[int] = None

    # ── Active task ─────────────────────────────────────────────────────────

    @property
    def active_task(self) -> Optional[Task]:
        if self._active_task_id is None:
            return None
        return self.repo.get_task(self._active_task_id)

    def set_active_task(self, task_id: Optional[int]) -> Optional[Task]:
        task = None
        if task_id is not None:
            task = self.repo.get_task(task_id)
            if task is None:
                raise RuntimeError(f"Task {task_id} does not exist.")
            if task.completed:
                raise RuntimeError(f"Task {task_id} is already completed.")
        self._active_task_id = task_id
        if self.recorder is not None:
            self.recorder.active_task_id = task_id
        logger.info("Active task: %s", task.title if task else "none")
        return task

    # ── Tasks ───────────────────────────────────────────────────────────────

    def add_task(self, title: str, project_id: Optional[int] = None,
                 estimate: int = 1, due_date: Optional[date] = None) -> Task:
        title = title.strip()
        if not title:
            raise ValueError("Task title must not be empty.")
        if estimate < 1:
            raise ValueError("A task is estimated at one pomodoro or more.")
        task = self.repo.create_task(title, project_id, estimate, due_date)
        logger.info("Added task %d: %s", task.id, task.title)
        return task

    def update_task(self, task_id: int, **changes) -> Optional[Task]:
        task = self.repo.update_task(task_id, **changes)
        if task is not None and task.completed:
            self._release(task_id)
        return task

    def complete_task(self, task_id: int) -> Optional[Task]:
        return self.update_task(task_id, completed=True)

    def delete_task(self, task_id: int) -> None:
        self.repo.delete_task(task_id)
        self._release(task_id)

    def reorder_tasks(self, task_ids: List[int]) -> None:
        self.repo.reorder_tasks(task_ids)

    def list_tasks(self, project_id: Optional[int] = None,
                   include_completed: bool = True) -> List[Task]:
        tasks = self.repo.list_tasks(project_id)
        if include_completed:
            return tasks
        return [t for t in tasks if not t.completed]

    # ── Projects ────────────────────────────────────────────────────────────

    def add_project(self, name: str, color: str = "#6366f1") -> Project:
        name = name.strip()
        if not name:
            raise ValueError("Project name must not be empty.")
        return self.repo.create_project(name, color)

    def update_project(self, project_id: int, **changes) -> Optional[Project]:
        return self.repo.update_project(project_id, **changes)

    def delete_project(self, project_id: int) -> None:
        """Delete a project; its tasks are kept and become project-less."""
        self.repo.delete_project(project_id)

    def list_projects(self) -> List[Project]:
        return self.repo.list_projects()

    def project_name_for(self, task: Task) -> Optional[str]:
        if task.project_id is None:
            return None
        project = self.repo.get_project(task.project_id)
        return project.name if project else None

    # ── Queries ─────────────────────────────────────────────────────────────

    def today_completed(self, clock: Clock = system_clock) -> int:
        """Non-interrupted sessions finished since local midnight."""
        midnight = datetime.combine(ms_to_datetime(clock()).date(), time.min)
        sessions = self.repo.list_sessions(completed_after=midnight)
        return sum(1 for s in sessions if not s.interrupted)

    def _release(self, task_id: int) -> None:
        if self._active_task_id == task_id:
            self.set_active_task(None)
