from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlmodel import Session

from tasktracker.api.errors import error_response_docs
from tasktracker.core.auth import CurrentActor
from tasktracker.core.config import get_settings
from tasktracker.db.enums import DEFAULT_TASK_AGENT, TaskPriority, TaskStatus
from tasktracker.db.repositories import DEFAULT_TASK_LIST_LIMIT
from tasktracker.db.session import get_session
from tasktracker.services import TaskDraft, TaskRecord, TaskService, build_task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    status: TaskStatus = Field(default=TaskStatus.TODO)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    category: str | None = Field(default=None, max_length=120)
    tags: list[str] = Field(default_factory=list)
    agent: str = Field(default=DEFAULT_TASK_AGENT, min_length=1, max_length=120)
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Fix login redirect",
                "description": "Users land on a blank page after signing in.",
                "priority": "high",
                "category": "frontend",
                "tags": ["auth", "bug"],
                "agent": "main",
            }
        }
    )


class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category: str | None = Field(default=None, max_length=120)
    tags: list[str] | None = None
    agent: str | None = Field(default=None, max_length=120)
    archived: bool | None = None
    note: str | None = None
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "in-progress",
                "note": "Picked this up after standup.",
            }
        }
    )

    @model_validator(mode="after")
    def validate_non_empty_payload(self) -> TaskUpdate:
        if not self.model_fields_set:
            raise ValueError("No updates provided")
        return self


class NoteRead(BaseModel):
    timestamp: datetime
    note: str
    by: str
    model_config = ConfigDict(from_attributes=True)


class TaskRead(BaseModel):
    id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    category: str | None
    tags: list[str]
    agent: str
    notes: list[NoteRead]
    created_by: str
    created_at: datetime
    updated_at: datetime
    archived: bool
    archived_at: datetime | None
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "0f1c8a52-4c57-4d55-9a57-52e1b1d0c9f1",
                "title": "Fix login redirect",
                "description": "Users land on a blank page after signing in.",
                "status": "done",
                "priority": "high",
                "category": "frontend",
                "tags": ["auth", "bug"],
                "agent": "main",
                "notes": [
                    {
                        "timestamp": "2026-10-01T09:30:00Z",
                        "note": "Redirect now honours the return URL.",
                        "by": "dev@example.com",
                    }
                ],
                "created_by": "dev@example.com",
                "created_at": "2026-09-30T17:00:00Z",
                "updated_at": "2026-10-01T09:30:00Z",
                "archived": False,
                "archived_at": None,
            }
        },
    )


DbSession = Annotated[Session, Depends(get_session)]


def get_task_service(session: DbSession) -> TaskService:
    return build_task_service(session, get_settings())


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


def _to_read(record: TaskRecord) -> TaskRead:
    return TaskRead.model_validate(record)


@router.get(
    "",
    response_model=list[TaskRead],
    responses=error_response_docs(status.HTTP_400_BAD_REQUEST, status.HTTP_401_UNAUTHORIZED),
)
def list_tasks(
    service: TaskServiceDep,
    _: CurrentActor,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    priority: str | None = None,
    category: str | None = None,
    agent: str | None = None,
    archived: bool = False,
    limit: Annotated[int, Query(ge=1)] = DEFAULT_TASK_LIST_LIMIT,
) -> list[TaskRead]:
    records = service.list(
        status=status_filter,
        priority=priority,
        category=category,
        agent=agent,
        archived=archived,
        limit=limit,
    )
    return [_to_read(record) for record in records]


@router.get(
    "/agents",
    response_model=list[str],
    responses=error_response_docs(status.HTTP_401_UNAUTHORIZED),
)
def list_agents(service: TaskServiceDep, _: CurrentActor) -> list[str]:
    return service.list_agents()


@router.get(
    "/{task_id}",
    response_model=TaskRead,
    responses=error_response_docs(status.HTTP_401_UNAUTHORIZED, status.HTTP_404_NOT_FOUND),
)
def get_task(task_id: str, service: TaskServiceDep, _: CurrentActor) -> TaskRead:
    return _to_read(service.get(task_id))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=TaskRead,
    responses=error_response_docs(status.HTTP_400_BAD_REQUEST, status.HTTP_401_UNAUTHORIZED),
)
def create_task(payload: TaskCreate, service: TaskServiceDep, actor: CurrentActor) -> TaskRead:
    draft = TaskDraft(**payload.model_dump(mode="python"))
    return _to_read(service.create(draft, actor=actor.email))


@router.patch(
    "/{task_id}",
    response_model=TaskRead,
    responses=error_response_docs(
        status.HTTP_400_BAD_REQUEST,
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_404_NOT_FOUND,
    ),
)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    service: TaskServiceDep,
    actor: CurrentActor,
) -> TaskRead:
    patch = payload.model_dump(exclude_unset=True, mode="python")
    return _to_read(service.update(task_id, patch, actor=actor.email))


@router.delete(
    "/{task_id}",
    response_model=TaskRead,
    responses=error_response_docs(status.HTTP_401_UNAUTHORIZED, status.HTTP_404_NOT_FOUND),
)
def delete_task(task_id: str, service: TaskServiceDep, actor: CurrentActor) -> TaskRead:
    return _to_read(service.archive(task_id, actor=actor.email))
