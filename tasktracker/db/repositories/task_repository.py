from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from sqlalchemy import case, false, update
from sqlmodel import Session, select

from tasktracker.db.enums import TASK_PRIORITY_RANK, TaskPriority, TaskStatus
from tasktracker.db.models import Task, TaskNote

DEFAULT_TASK_LIST_LIMIT = 100

_PRIORITY_RANK_BY_VALUE: dict[str, int] = {
    priority.value: rank for priority, rank in TASK_PRIORITY_RANK.items()
}


@dataclass(frozen=True, slots=True)
class TaskFilters:
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category: str | None = None
    agent: str | None = None
    archived: bool = False
    limit: int = DEFAULT_TASK_LIST_LIMIT

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")


class TaskRepository:
    """Statement-level access to the ``tasks`` and ``task_notes`` tables.

    The repository never commits; callers own the transaction boundary.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, task: Task) -> Task:
        self.session.add(task)
        self.session.flush()
        return task

    def get(self, task_id: str) -> Task | None:
        return self.session.get(Task, task_id)

    def list(self, filters: TaskFilters | None = None) -> list[Task]:
        active_filters = filters or TaskFilters()
        task_columns = cast(Any, Task)

        statement = select(Task).where(task_columns.archived == active_filters.archived)
        if active_filters.status is not None:
            statement = statement.where(task_columns.status == active_filters.status.value)
        if active_filters.priority is not None:
            statement = statement.where(task_columns.priority == active_filters.priority.value)
        if active_filters.category is not None:
            statement = statement.where(task_columns.category == active_filters.category)
        if active_filters.agent is not None:
            statement = statement.where(task_columns.agent == active_filters.agent)

        priority_rank = case(
            _PRIORITY_RANK_BY_VALUE,
            value=task_columns.priority,
            else_=len(_PRIORITY_RANK_BY_VALUE) + 1,
        )
        statement = statement.order_by(
            priority_rank.asc(),
            task_columns.created_at.desc(),
        ).limit(active_filters.limit)
        return list(self.session.exec(statement).all())

    def list_agents(self) -> list[str]:
        agent_column = cast(Any, Task.agent)
        statement = (
            select(agent_column)
            .where(cast(Any, Task.archived) == false())
            .distinct()
            .order_by(agent_column.asc())
        )
        return [str(agent) for agent in self.session.exec(statement).all()]

    def update_fields(self, task_id: str, values: Mapping[str, Any]) -> bool:
        """Apply ``values`` to one row in a single UPDATE. Returns False if no row matched."""
        statement = (
            update(Task)
            .where(cast(Any, Task.id) == task_id)
            .values(**dict(values))
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)
        return cast(Any, result).rowcount == 1

    def archive_done_before(self, *, cutoff: datetime, now: datetime) -> int:
        task_columns = cast(Any, Task)
        statement = (
            update(Task)
            .where(task_columns.status == TaskStatus.DONE.value)
            .where(task_columns.archived == false())
            .where(task_columns.updated_at < cutoff)
            .values(archived=True, archived_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)
        return int(cast(Any, result).rowcount or 0)

    def append_note(
        self,
        *,
        task_id: str,
        note: str,
        author: str,
        created_at: datetime,
    ) -> TaskNote:
        entry = TaskNote(task_id=task_id, note=note, author=author, created_at=created_at)
        self.session.add(entry)
        self.session.flush()
        return entry

    def notes_for(self, task_ids: Sequence[str]) -> dict[str, list[TaskNote]]:
        if not task_ids:
            return {}
        note_columns = cast(Any, TaskNote)
        statement = (
            select(TaskNote)
            .where(note_columns.task_id.in_(list(task_ids)))
            .order_by(note_columns.id.asc())
        )
        grouped: dict[str, list[TaskNote]] = defaultdict(list)
        for entry in self.session.exec(statement).all():
            grouped[entry.task_id].append(entry)
        return dict(grouped)
