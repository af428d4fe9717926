"""
Seed Data Generator — creates realistic fake history for development.

Run: python scripts/seed_data.py [days]
"""

import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pomotrack.data.database import Database
from pomotrack.data.models import Session
from pomotrack.data.repository import Repository


def seed(num_days: int = 30) -> None:
    db = Database()
    db.connect()
    repo = Repository(db.conn)

    # ── Projects & Tasks ────────────────────────────────────────────────
    projects_tasks = {
        ("Work", "#6366f1"): ["API refactor", "Code review", "Sprint planning"],
        ("Study", "#f59e0b"): ["Linear Algebra", "Reading Textbook"],
        ("Writing", "#10b981"): ["Blog Post", "Documentation"],
    }

    task_ids = []
    for (project_name, color), titles in projects_tasks.items():
        project = repo.create_project(project_name, color)
        for title in titles:
            task = repo.create_task(title, project.id,
                                    estimated_pomodoros=random.randint(2, 8))
            task_ids.append(task.id)
    task_ids.append(None)  # some pomodoros are not attributed to a task

    # ── Generate sessions ───────────────────────────────────────────────
    today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    total = 0

    for offset in range(num_days, -1, -1):
        day = today - timedelta(days=offset)
        # Lighter weekends, and some days off entirely
        if random.random() < (0.5 if day.weekday() >= 5 else 0.15):
            continue

        cursor = day + timedelta(hours=random.randint(8, 10),
                                 minutes=random.randint(0, 59))
        for _ in range(random.randint(2, 9)):
            task_id = random.choice(task_ids)
            interrupted = random.random() < 0.12
            if interrupted:
                minutes = random.randint(3, 20)
            elif random.random() < 0.2:
                minutes = random.randint(25, 90)  # flow session past target
            else:
                minutes = 25
            end = cursor + timedelta(minutes=minutes)
            if end > datetime.now():
                break

            repo.append_session(Session(
                task_id=task_id,
                duration_minutes=minutes,
                started_at=cursor,
                completed_at=end,
                interrupted=interrupted,
            ), credit_task=not interrupted)
            total += 1

            cursor = end + timedelta(minutes=random.choice((5, 5, 5, 15, 30)))

    # Mark the busiest tasks done so estimate accuracy has data
    for task in repo.list_tasks():
        if task.actual_pomodoros >= task.estimated_pomodoros:
            repo.update_task(task.id, completed=True)

    db.close()
    print(f"Seeded {total} sessions over {num_days} days across {len(task_ids) - 1} tasks.")


if __name__ == "__main__":
    days = int(sys.argv[1]) if len(sys.argv) > 1 else 30
    seed(days)


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this script does:
#   Generates a month of plausible pomodoro history so the Statistics view
#   has streaks, per-project rollups and hour/day insights to show.
#
# Key points:
#   - Mostly 25-minute pomodoros, some long flow sessions, about 1 in 8
#     interrupted, and gaps on random days so streaks break realistically.
#   - Uses the same Repository interface as the real app, including the
#     "+1 actual pomodoro per completed session" rule.
