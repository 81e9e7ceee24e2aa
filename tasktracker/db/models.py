from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlmodel import Field, SQLModel

from tasktracker.db.enums import DEFAULT_TASK_AGENT, TaskPriority, TaskStatus


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def generate_task_id() -> str:
    return str(uuid4())


def _sql_in(column: str, values: type[StrEnum]) -> str:
    quoted = ", ".join(f"'{member.value}'" for member in values)
    return f"{column} IN ({quoted})"


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(_sql_in("status", TaskStatus), name="ck_tasks_status_valid"),
        CheckConstraint(_sql_in("priority", TaskPriority), name="ck_tasks_priority_valid"),
        CheckConstraint("length(title) >= 1", name="ck_tasks_title_present"),
        Index("ix_tasks_archived_status_updated_at", "archived", "status", "updated_at"),
    )

    id: str = Field(
        default_factory=generate_task_id,
        sa_column=Column(String(length=36), primary_key=True),
    )
    title: str = Field(sa_column=Column(Text(), nullable=False))
    description: str | None = Field(default=None, sa_column=Column(Text(), nullable=True))
    status: TaskStatus = Field(
        default=TaskStatus.TODO,
        sa_column=Column(String(length=32), nullable=False, index=True),
    )
    priority: TaskPriority = Field(
        default=TaskPriority.MEDIUM,
        sa_column=Column(String(length=32), nullable=False, index=True),
    )
    category: str | None = Field(
        default=None,
        sa_column=Column(String(length=120), nullable=True, index=True),
    )
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON(), nullable=False))
    agent: str = Field(
        default=DEFAULT_TASK_AGENT,
        sa_column=Column(String(length=120), nullable=False, index=True),
    )
    created_by: str = Field(sa_column=Column(String(length=320), nullable=False, index=True))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    archived: bool = Field(default=False, nullable=False, index=True)
    archived_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )


class TaskNote(SQLModel, table=True):
    """One entry of a task's activity log. Rows are only ever inserted."""

    __tablename__ = "task_notes"
    __table_args__ = (CheckConstraint("length(note) >= 1", name="ck_task_notes_note_present"),)

    id: int | None = Field(default=None, primary_key=True)
    task_id: str = Field(
        sa_column=Column(
            String(length=36),
            ForeignKey("tasks.id"),
            nullable=False,
            index=True,
        ),
    )
    note: str = Field(sa_column=Column(Text(), nullable=False))
    author: str = Field(sa_column=Column(String(length=320), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
