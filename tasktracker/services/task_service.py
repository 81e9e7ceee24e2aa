from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, TypeVar

from sqlmodel import Session

from tasktracker.core.config import Settings
from tasktracker.core.errors import NotFoundError, ValidationError
from tasktracker.core.logging import bind_log_context, get_logger
from tasktracker.db.enums import DEFAULT_TASK_AGENT, TaskPriority, TaskStatus
from tasktracker.db.models import Task, TaskNote, as_utc, utc_now
from tasktracker.db.repositories import DEFAULT_TASK_LIST_LIMIT, TaskFilters, TaskRepository
from tasktracker.services.archive_sweep import ArchiveSweep, build_archive_sweep
from tasktracker.services.storage import storage_guard

RECOGNIZED_PATCH_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "category",
        "tags",
        "agent",
        "archived",
        "note",
    }
)
_NON_NULLABLE_PATCH_FIELDS: frozenset[str] = frozenset(
    {"title", "status", "priority", "tags", "agent", "archived", "note"}
)

_EnumT = TypeVar("_EnumT", bound=StrEnum)

logger = get_logger("tasktracker.services.tasks")


@dataclass(frozen=True, slots=True)
class NoteEntry:
    timestamp: datetime
    note: str
    by: str


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    category: str | None
    tags: tuple[str, ...]
    agent: str
    notes: tuple[NoteEntry, ...]
    created_by: str
    created_at: datetime
    updated_at: datetime
    archived: bool
    archived_at: datetime | None


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """Input for ``TaskService.create``. ``None`` means the field was omitted."""

    title: str | None
    description: str | None = None
    status: TaskStatus | str | None = None
    priority: TaskPriority | str | None = None
    category: str | None = None
    tags: Iterable[str] | None = None
    agent: str | None = None


def _coerce_enum(enum_type: type[_EnumT], value: object, *, field: str) -> _EnumT:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value))
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(
            f"Invalid {field} {value!r}; expected one of: {allowed}",
            field=field,
        ) from exc


def _require_title(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Title is required", field="title")
    return value.strip()


def _optional_text(value: object, *, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return value


def _optional_label(value: object, *, field: str) -> str | None:
    text = _optional_text(value, field=field)
    if text is None:
        return None
    return text.strip() or None


def _require_label(value: object, *, field: str) -> str:
    label = _optional_label(value, field=field)
    if label is None:
        raise ValidationError(f"{field} must be a non-empty string", field=field)
    return label


def _normalize_tags(value: object) -> list[str]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ValidationError("tags must be a list of strings", field="tags")
    tags: list[str] = []
    for raw in value:
        if not isinstance(raw, str):
            raise ValidationError("tags must be a list of strings", field="tags")
        tag = raw.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _require_bool(value: object, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean", field=field)
    return value


def _to_record(task: Task, notes: Iterable[TaskNote]) -> TaskRecord:
    return TaskRecord(
        id=task.id,
        title=task.title,
        description=task.description,
        status=TaskStatus(task.status),
        priority=TaskPriority(task.priority),
        category=task.category,
        tags=tuple(task.tags or ()),
        agent=task.agent,
        notes=tuple(
            NoteEntry(timestamp=as_utc(entry.created_at), note=entry.note, by=entry.author)
            for entry in notes
        ),
        created_by=task.created_by,
        created_at=as_utc(task.created_at),
        updated_at=as_utc(task.updated_at),
        archived=bool(task.archived),
        archived_at=as_utc(task.archived_at) if task.archived_at is not None else None,
    )


class TaskService:
    """Task lifecycle: creation defaults, partial updates, archiving and queries."""

    def __init__(
        self,
        session: Session,
        *,
        archive_sweep: ArchiveSweep | None = None,
        clock: Callable[[], datetime] = utc_now,
        max_list_limit: int | None = None,
    ) -> None:
        self._session = session
        self._repository = TaskRepository(session)
        self._archive_sweep = archive_sweep
        self._clock = clock
        self._max_list_limit = max_list_limit

    def create(self, draft: TaskDraft, *, actor: str) -> TaskRecord:
        title = _require_title(draft.title)
        status = (
            TaskStatus.TODO
            if draft.status is None
            else _coerce_enum(TaskStatus, draft.status, field="status")
        )
        priority = (
            TaskPriority.MEDIUM
            if draft.priority is None
            else _coerce_enum(TaskPriority, draft.priority, field="priority")
        )
        agent = (
            DEFAULT_TASK_AGENT
            if draft.agent is None
            else _require_label(draft.agent, field="agent")
        )
        now = as_utc(self._clock())
        task = Task(
            title=title,
            description=_optional_text(draft.description, field="description"),
            status=status,
            priority=priority,
            category=_optional_label(draft.category, field="category"),
            tags=[] if draft.tags is None else _normalize_tags(draft.tags),
            agent=agent,
            created_by=actor,
            created_at=now,
            updated_at=now,
        )
        with storage_guard(self._session, operation="task.create"):
            self._repository.add(task)
            self._session.commit()
            task_id = task.id

        bind_log_context(task_id=task_id)
        logger.info(
            "task.created",
            task_id=task_id,
            status=status.value,
            priority=priority.value,
            agent=agent,
        )
        return self.get(task_id)

    def get(self, task_id: str) -> TaskRecord:
        with storage_guard(self._session, operation="task.get"):
            task = self._repository.get(task_id)
            if task is None:
                raise NotFoundError(f"Task {task_id} not found")
            notes = self._repository.notes_for([task_id]).get(task_id, [])
            return _to_record(task, notes)

    def update(self, task_id: str, patch: Mapping[str, Any], *, actor: str) -> TaskRecord:
        changes = {name: value for name, value in patch.items() if name in RECOGNIZED_PATCH_FIELDS}
        if not changes:
            raise ValidationError("No updates provided")
        values = self._validate_changes(changes)
        note = values.pop("note", None)

        with storage_guard(self._session, operation="task.update"):
            current = self._repository.get(task_id)
            if current is None:
                raise NotFoundError(f"Task {task_id} not found")
            now = self._next_timestamp(current.updated_at)
            if "archived" in values:
                values["archived_at"] = now if values["archived"] else None
            values["updated_at"] = now

            if not self._repository.update_fields(task_id, values):
                self._session.rollback()
                raise NotFoundError(f"Task {task_id} not found")
            if note is not None:
                self._repository.append_note(
                    task_id=task_id,
                    note=note,
                    author=actor,
                    created_at=now,
                )
            self._session.commit()

        bind_log_context(task_id=task_id)
        changed_fields = sorted(name for name in values if name != "updated_at")
        logger.info("task.updated", task_id=task_id, fields=changed_fields)
        if note is not None:
            logger.info("task.note_appended", task_id=task_id, author=actor)
        if values.get("archived") is True:
            logger.info("task.archived", task_id=task_id)
        return self.get(task_id)

    def archive(self, task_id: str, *, actor: str) -> TaskRecord:
        """Soft delete: the row stays, flagged as archived."""
        return self.update(task_id, {"archived": True}, actor=actor)

    def list(
        self,
        *,
        status: TaskStatus | str | None = None,
        priority: TaskPriority | str | None = None,
        category: str | None = None,
        agent: str | None = None,
        archived: bool = False,
        limit: int = DEFAULT_TASK_LIST_LIMIT,
    ) -> list[TaskRecord]:
        if limit < 1:
            raise ValidationError("limit must be >= 1", field="limit")
        if self._max_list_limit is not None and limit > self._max_list_limit:
            raise ValidationError(f"limit must be <= {self._max_list_limit}", field="limit")
        # Blank filter values mean "no filter".
        status_value = _optional_label(status, field="status")
        priority_value = _optional_label(priority, field="priority")
        filters = TaskFilters(
            status=(
                None
                if status_value is None
                else _coerce_enum(TaskStatus, status_value, field="status")
            ),
            priority=(
                None
                if priority_value is None
                else _coerce_enum(TaskPriority, priority_value, field="priority")
            ),
            category=_optional_label(category, field="category"),
            agent=_optional_label(agent, field="agent"),
            archived=archived,
            limit=limit,
        )

        # The sweep deliberately ignores the filters: it archives across the whole table.
        if self._archive_sweep is not None:
            self._archive_sweep.run_once(session=self._session, now=self._clock())

        with storage_guard(self._session, operation="task.list"):
            tasks = self._repository.list(filters)
            notes_by_task = self._repository.notes_for([task.id for task in tasks])
            return [_to_record(task, notes_by_task.get(task.id, [])) for task in tasks]

    def list_agents(self) -> list[str]:
        with storage_guard(self._session, operation="task.list_agents"):
            return self._repository.list_agents()

    def _validate_changes(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, value in changes.items():
            if value is None and name in _NON_NULLABLE_PATCH_FIELDS:
                raise ValidationError(f"{name} cannot be null", field=name)
            if name == "title":
                values[name] = _require_title(value)
            elif name == "description":
                values[name] = _optional_text(value, field=name)
            elif name == "status":
                values[name] = _coerce_enum(TaskStatus, value, field=name).value
            elif name == "priority":
                values[name] = _coerce_enum(TaskPriority, value, field=name).value
            elif name == "category":
                values[name] = _optional_label(value, field=name)
            elif name == "tags":
                values[name] = _normalize_tags(value)
            elif name == "agent":
                values[name] = _require_label(value, field=name)
            elif name == "archived":
                values[name] = _require_bool(value, field=name)
            elif name == "note":
                text = _optional_text(value, field=name)
                if text is None or not text.strip():
                    raise ValidationError("note must be a non-empty string", field=name)
                values[name] = text
        return values

    def _next_timestamp(self, previous: datetime) -> datetime:
        # updated_at must move forward even when the clock has not ticked.
        now = as_utc(self._clock())
        floor = as_utc(previous) + timedelta(microseconds=1)
        return now if now >= floor else floor


def build_task_service(session: Session, settings: Settings) -> TaskService:
    return TaskService(
        session,
        archive_sweep=build_archive_sweep(settings) if settings.auto_archive_on_list else None,
        max_list_limit=settings.task_list_max_limit,
    )
