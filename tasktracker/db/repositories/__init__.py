from tasktracker.db.repositories.task_repository import (
    DEFAULT_TASK_LIST_LIMIT,
    TaskFilters,
    TaskRepository,
)

__all__ = [
    "DEFAULT_TASK_LIST_LIMIT",
    "TaskFilters",
    "TaskRepository",
]
