"""
SQLite database initialization and connection management.

Single responsibility: own the connection, create tables.
All actual queries live in Repository.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default DB lives at the repo root
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent.parent / "pomotrack.db"

SCHEMA_SQL = """
-- Projects ------------------------------------------------------------------
CREATE TABLE IF NOT EXISTS projects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL,
    color       TEXT    NOT NULL DEFAULT '#6366f1',
    completed   INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at  TEXT    NOT NULL DEFAULT (datetime('now', 'localtime'))
);

-- Tasks ---------------------------------------------------------------------
CREATE TABLE IF NOT EXISTS tasks (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    title                TEXT    NOT NULL,
    project_id           INTEGER REFERENCES projects(id) ON DELETE SET NULL,
    completed            INTEGER NOT NULL DEFAULT 0,
    estimated_pomodoros  INTEGER NOT NULL DEFAULT 1,
    actual_pomodoros     INTEGER NOT NULL DEFAULT 0,
    due_date             TEXT,
    sort_order           INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT    NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at           TEXT    NOT NULL DEFAULT (datetime('now', 'localtime'))
);

-- Sessions (immutable once written) -----------------------------------------
CREATE TABLE IF NOT EXISTS sessions (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id           INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
    duration_minutes  INTEGER NOT NULL,
    started_at        TEXT    NOT NULL,
    completed_at      TEXT    NOT NULL,
    interrupted       INTEGER NOT NULL DEFAULT 0
);

-- Indexes for common queries -------------------------------------------------
CREATE INDEX IF NOT EXISTS idx_sessions_task       ON sessions(task_id);
CREATE INDEX IF NOT EXISTS idx_sessions_completed  ON sessions(completed_at);
CREATE INDEX IF NOT EXISTS idx_tasks_project       ON tasks(project_id);
"""


class Database:
    """Thin wrapper around a SQLite connection."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        self.conn: Optional[sqlite3.Connection] = None

    # -- lifecycle -----------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open (or return existing) connection and ensure schema exists."""
        if self.conn is not None:
            return self.conn
        logger.info("Connecting to SQLite at %s", self.db_path)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row          # dict-like rows
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()
        return self.conn

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed.")

    # -- internal ------------------------------------------------------------

    def _create_tables(self) -> None:
        assert self.conn is not None
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()
        logger.info("Database schema ensured.")


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Manages the SQLite connection and makes sure all tables exist on startup.
#
# Key pieces:
#   - SCHEMA_SQL: the full DDL. CREATE IF NOT EXISTS makes it idempotent,
#     safe to run every launch.
#   - ON DELETE SET NULL: deleting a task or project must not delete the
#     history recorded against it. Those sessions fall into "No Project".
#   - Timestamps are stored as local ISO strings because every statistic is
#     about the user's local calendar day.
#
# Interviewer-friendly talking points:
#   1. The core services never import this module. They take a Repository,
#      so the store can be swapped (or faked in tests).
#   2. WAL mode + foreign keys ON (SQLite has them OFF by default!).
