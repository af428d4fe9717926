from .database import Database
from .models import CompletedRun, Project, Session, Settings, Task, TimerMode
from .repository import Repository

__all__ = ["Database", "CompletedRun", "Project", "Session", "Settings", "Task",
           "TimerMode", "Repository"]
