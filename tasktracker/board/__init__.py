from tasktracker.board.client import SessionExpiredError, TaskApiClient, TaskApiError
from tasktracker.board.controller import BoardController
from tasktracker.board.kanban import (
    ALL_TASKS_FILTER,
    BOARD_COLUMNS,
    BoardColumn,
    DragResult,
    DropLocation,
    StatusMove,
    column_counts,
    group_tasks_by_status,
    resolve_drag,
)
from tasktracker.board.poller import VisibilityPoller

__all__ = [
    "ALL_TASKS_FILTER",
    "BOARD_COLUMNS",
    "BoardColumn",
    "BoardController",
    "DragResult",
    "DropLocation",
    "SessionExpiredError",
    "StatusMove",
    "TaskApiClient",
    "TaskApiError",
    "VisibilityPoller",
    "column_counts",
    "group_tasks_by_status",
    "resolve_drag",
]
