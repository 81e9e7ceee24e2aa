"""Database layer modules and public helpers."""

from tasktracker.db.enums import (
    DEFAULT_TASK_AGENT,
    TASK_PRIORITY_RANK,
    TaskPriority,
    TaskStatus,
)
from tasktracker.db.models import Task, TaskNote
from tasktracker.db.session import get_session, session_scope

__all__ = [
    "DEFAULT_TASK_AGENT",
    "TASK_PRIORITY_RANK",
    "Task",
    "TaskNote",
    "TaskPriority",
    "TaskStatus",
    "get_session",
    "session_scope",
]
