"""
Repository — the single place where SQL lives.

This is the Session Store: every other module talks to Repository, never to
raw SQL. Services receive plain dataclasses and stay storage-agnostic.
"""

from __future__ import annotations

import csv
import io
import logging
import sqlite3
from datetime import date, datetime
from typing import Iterable, List, Optional

from .models import Project, Session, Task

logger = logging.getLogger(__name__)

# helper: parse ISO datetime strings from SQLite
_parse_dt = lambda s: datetime.fromisoformat(s) if s else None

_TASK_COLUMNS = ("title", "project_id", "completed", "estimated_pomodoros",
                 "due_date", "sort_order")
_PROJECT_COLUMNS = ("name", "color", "completed")


class Repository:
    """Data-access layer wrapping a sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ── Projects ────────────────────────────────────────────────────────────

    def create_project(self, name: str, color: str = "#6366f1") -> Project:
        cur = self.conn.execute(
            "INSERT INTO projects (name, color) VALUES (?, ?)", (name, color)
        )
        self.conn.commit()
        return self.get_project(cur.lastrowid)

    def get_project(self, project_id: int) -> Optional[Project]:
        row = self.conn.execute(
            "SELECT * FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return self._row_to_project(row) if row else None

    def list_projects(self) -> List[Project]:
        rows = self.conn.execute(
            "SELECT * FROM projects ORDER BY id"
        ).fetchall()
        return [self._row_to_project(r) for r in rows]

    def update_project(self, project_id: int, **changes) -> Optional[Project]:
        self._update("projects", _PROJECT_COLUMNS, project_id, changes)
        return self.get_project(project_id)

    def delete_project(self, project_id: int) -> None:
        self.conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        self.conn.commit()
        logger.info("Deleted project %d", project_id)

    # ── Tasks ───────────────────────────────────────────────────────────────

    def create_task(self, title: str, project_id: Optional[int] = None,
                    estimated_pomodoros: int = 1,
                    due_date: Optional[date] = None) -> Task:
        row = self.conn.execute(
            "SELECT COALESCE(MAX(sort_order), -1) + 1 FROM tasks"
        ).fetchone()
        cur = self.conn.execute(
            "INSERT INTO tasks (title, project_id, estimated_pomodoros, due_date, sort_order) "
            "VALUES (?, ?, ?, ?, ?)",
            (title, project_id, estimated_pomodoros,
             due_date.isoformat() if due_date else None, row[0]),
        )
        self.conn.commit()
        return self.get_task(cur.lastrowid)

    def get_task(self, task_id: int) -> Optional[Task]:
        row = self.conn.execute(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        return self._row_to_task(row) if row else None

    def list_tasks(self, project_id: Optional[int] = None) -> List[Task]:
        if project_id is not None:
            rows = self.conn.execute(
                "SELECT * FROM tasks WHERE project_id = ? ORDER BY sort_order, id",
                (project_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM tasks ORDER BY sort_order, id"
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def update_task(self, task_id: int, **changes) -> Optional[Task]:
        if isinstance(changes.get("due_date"), date):
            changes["due_date"] = changes["due_date"].isoformat()
        self._update("tasks", _TASK_COLUMNS, task_id, changes)
        return self.get_task(task_id)

    def delete_task(self, task_id: int) -> None:
        self.conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        self.conn.commit()
        logger.info("Deleted task %d", task_id)

    def reorder_tasks(self, task_ids: Iterable[int]) -> None:
        self.conn.executemany(
            "UPDATE tasks SET sort_order = ? WHERE id = ?",
            [(index, task_id) for index, task_id in enumerate(task_ids)],
        )
        self.conn.commit()

    def increment_task_actual(self, task_id: int) -> None:
        """Bump a task's actual-pomodoro counter by exactly one."""
        self._bump_task_actual(task_id)
        self.conn.commit()

    def _bump_task_actual(self, task_id: int) -> None:
        self.conn.execute(
            "UPDATE tasks SET actual_pomodoros = actual_pomodoros + 1, "
            "updated_at = ? WHERE id = ?",
            (datetime.now().isoformat(timespec="seconds"), task_id),
        )

    # ── Sessions ────────────────────────────────────────────────────────────

    def append_session(self, session: Session, credit_task: bool = False) -> Session:
        """
        Persist a new session and return it with its id filled in.

        With credit_task, the session's task gets +1 actual pomodoro in the
        same transaction: either both writes land or neither does.
        """
        try:
            cur = self.conn.execute(
                "INSERT INTO sessions (task_id, duration_minutes, started_at, completed_at, interrupted) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    session.task_id,
                    session.duration_minutes,
                    session.started_at.isoformat(),
                    session.completed_at.isoformat(),
                    int(session.interrupted),
                ),
            )
            if credit_task and session.task_id is not None:
                self._bump_task_actual(session.task_id)
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return Session(
            id=cur.lastrowid,
            task_id=session.task_id,
            duration_minutes=session.duration_minutes,
            started_at=session.started_at,
            completed_at=session.completed_at,
            interrupted=session.interrupted,
        )

    def get_session(self, session_id: int) -> Optional[Session]:
        row = self.conn.execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(
        self,
        completed_after: Optional[datetime] = None,
        task_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Session]:
        """Snapshot of recorded sessions, oldest first."""
        query = "SELECT * FROM sessions"
        conditions: List[str] = []
        params: list = []

        if completed_after:
            conditions.append("completed_at >= ?")
            params.append(completed_after.isoformat())
        if task_id is not None:
            conditions.append("task_id = ?")
            params.append(task_id)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY completed_at, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_session(r) for r in rows]

    def count_sessions(self, interrupted: Optional[bool] = None) -> int:
        if interrupted is None:
            row = self.conn.execute("SELECT COUNT(*) FROM sessions").fetchone()
        else:
            row = self.conn.execute(
                "SELECT COUNT(*) FROM sessions WHERE interrupted = ?",
                (int(interrupted),),
            ).fetchone()
        return row[0]

    def delete_session(self, session_id: int) -> None:
        self.conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        self.conn.commit()
        logger.info("Deleted session %d", session_id)

    # ── Data export ─────────────────────────────────────────────────────────

    def export_sessions_csv(self) -> str:
        """Return all sessions with task and project names as CSV text."""
        rows = self.conn.execute(
            "SELECT s.id, s.started_at, s.completed_at, s.duration_minutes, "
            "s.interrupted, t.title AS task_title, p.name AS project_name "
            "FROM sessions s "
            "LEFT JOIN tasks t ON s.task_id = t.id "
            "LEFT JOIN projects p ON t.project_id = p.id "
            "ORDER BY s.completed_at, s.id"
        ).fetchall()
        if not rows:
            return ""
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(rows[0].keys())
        writer.writerows(tuple(r) for r in rows)
        return buf.getvalue()

    def reset_all_data(self) -> None:
        """Delete all data. Requires explicit confirmation in the UI."""
        for table in ["sessions", "tasks", "projects"]:
            self.conn.execute(f"DELETE FROM {table}")
        self.conn.commit()
        logger.warning("All data has been reset.")

    # ── Internal ────────────────────────────────────────────────────────────

    def _update(self, table: str, allowed: tuple, row_id: int, changes: dict) -> None:
        unknown = set(changes) - set(allowed)
        if unknown:
            raise ValueError(f"Cannot update {table} columns: {sorted(unknown)}")
        if not changes:
            return
        assignments = ", ".join(f"{col} = ?" for col in changes)
        params = [int(v) if isinstance(v, bool) else v for v in changes.values()]
        params.append(datetime.now().isoformat(timespec="seconds"))
        params.append(row_id)
        self.conn.execute(
            f"UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?", params
        )
        self.conn.commit()

    # ── Row mappers ─────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(id=row["id"], name=row["name"], color=row["color"],
                       completed=bool(row["completed"]),
                       created_at=_parse_dt(row["created_at"]),
                       updated_at=_parse_dt(row["updated_at"]))

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"], title=row["title"],
            project_id=row["project_id"],
            completed=bool(row["completed"]),
            estimated_pomodoros=row["estimated_pomodoros"],
            actual_pomodoros=row["actual_pomodoros"],
            due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
            sort_order=row["sort_order"],
            created_at=_parse_dt(row["created_at"]),
            updated_at=_parse_dt(row["updated_at"]),
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"], task_id=row["task_id"],
            duration_minutes=row["duration_minutes"],
            started_at=_parse_dt(row["started_at"]),
            completed_at=_parse_dt(row["completed_at"]),
            interrupted=bool(row["interrupted"]),
        )


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The Repository is the ONLY place raw SQL queries live. Services call
#   methods like repo.append_session() instead of writing SQL strings.
#   This is the "Repository Pattern."
#
# Key methods:
#   - append_session / list_sessions / increment_task_actual: the three
#     calls the timer core depends on.
#   - CRUD for projects and tasks, used by TaskService.
#   - export_sessions_csv(): data portability, users can get their data out.
#
# Interviewer-friendly talking points:
#   1. No update_session(): sessions are append-only history. Deleting is
#      allowed (user cleanup), editing is not.
#   2. increment_task_actual uses "col = col + 1" in SQL so the increment is
#      atomic, no read-modify-write race.
#   3. _update() whitelists column names before building SQL. Values are
#      always bound parameters; only vetted identifiers are interpolated.
