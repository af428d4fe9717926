"""pomotrack — Pomodoro timer with flow mode, task tracking and statistics."""

__version__ = "0.1.0"
