from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, TypeVar

from tasktracker.db.enums import TaskStatus


class StatusCarrier(Protocol):
    @property
    def status(self) -> str: ...


@dataclass(frozen=True, slots=True)
class BoardColumn:
    id: TaskStatus
    title: str


BOARD_COLUMNS: tuple[BoardColumn, ...] = (
    BoardColumn(id=TaskStatus.TODO, title="To Do"),
    BoardColumn(id=TaskStatus.IN_PROGRESS, title="In Progress"),
    BoardColumn(id=TaskStatus.BLOCKED, title="Blocked"),
    BoardColumn(id=TaskStatus.DONE, title="Done"),
)

ALL_TASKS_FILTER = "all"

_TaskT = TypeVar("_TaskT", bound=StatusCarrier)


@dataclass(frozen=True, slots=True)
class DropLocation:
    column_id: str
    index: int


@dataclass(frozen=True, slots=True)
class DragResult:
    """A finished drag gesture. ``destination`` is None when dropped outside every column."""

    task_id: str
    source: DropLocation
    destination: DropLocation | None


@dataclass(frozen=True, slots=True)
class StatusMove:
    task_id: str
    status: TaskStatus


def group_tasks_by_status(tasks: Iterable[_TaskT]) -> dict[TaskStatus, list[_TaskT]]:
    """Bucket tasks into board columns, keeping input order. Unknown statuses are dropped."""
    grouped: dict[TaskStatus, list[_TaskT]] = {column.id: [] for column in BOARD_COLUMNS}
    for task in tasks:
        bucket = grouped.get(task.status)  # type: ignore[call-overload]
        if bucket is not None:
            bucket.append(task)
    return grouped


def column_counts(tasks: Iterable[StatusCarrier]) -> dict[str, int]:
    counts: dict[str, int] = {ALL_TASKS_FILTER: 0}
    counts.update({column.id.value: 0 for column in BOARD_COLUMNS})
    for task in tasks:
        counts[ALL_TASKS_FILTER] += 1
        if task.status in counts:
            counts[str(task.status)] += 1
    return counts


def resolve_drag(result: DragResult) -> StatusMove | None:
    destination = result.destination
    if destination is None:
        return None
    # Reordering inside a column carries no status change.
    if destination.column_id == result.source.column_id:
        return None
    try:
        target_status = TaskStatus(destination.column_id)
    except ValueError:
        return None
    return StatusMove(task_id=result.task_id, status=target_status)
