from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from sqlmodel import Session

from tasktracker.core.errors import NotFoundError, ValidationError
from tasktracker.db.enums import TaskPriority, TaskStatus
from tasktracker.services import ArchiveSweep, TaskDraft, TaskService

ACTOR = "alice@example.com"
START = datetime(2026, 10, 1, 9, 0, tzinfo=UTC)


class ManualClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def make_service(session: Session, clock: ManualClock) -> Callable[..., TaskService]:
    def factory(*, sweep: bool = False, max_list_limit: int | None = None) -> TaskService:
        return TaskService(
            session,
            archive_sweep=ArchiveSweep(retention_days=7) if sweep else None,
            clock=clock,
            max_list_limit=max_list_limit,
        )

    return factory


def test_create_applies_defaults(make_service: Callable[..., TaskService]) -> None:
    record = make_service().create(TaskDraft(title="  Write release notes  "), actor=ACTOR)

    assert record.title == "Write release notes"
    assert record.status is TaskStatus.TODO
    assert record.priority is TaskPriority.MEDIUM
    assert record.agent == "main"
    assert record.tags == ()
    assert record.notes == ()
    assert record.description is None
    assert record.category is None
    assert record.archived is False
    assert record.archived_at is None
    assert record.created_by == ACTOR
    assert record.created_at == START
    assert record.updated_at == START


def test_create_keeps_supplied_fields(make_service: Callable[..., TaskService]) -> None:
    record = make_service().create(
        TaskDraft(
            title="Ship board",
            description="Drag and drop",
            status="in-progress",
            priority=TaskPriority.URGENT,
            category=" frontend ",
            tags=["ui", "ui", " board "],
            agent="release-bot",
        ),
        actor=ACTOR,
    )

    assert record.status is TaskStatus.IN_PROGRESS
    assert record.priority is TaskPriority.URGENT
    assert record.category == "frontend"
    assert record.tags == ("ui", "board")
    assert record.agent == "release-bot"


@pytest.mark.parametrize("title", [None, "", "   "])
def test_create_requires_title(make_service: Callable[..., TaskService], title: str | None) -> None:
    with pytest.raises(ValidationError, match="Title is required") as exc_info:
        make_service().create(TaskDraft(title=title), actor=ACTOR)

    assert exc_info.value.field == "title"


def test_create_rejects_unknown_status(make_service: Callable[..., TaskService]) -> None:
    with pytest.raises(ValidationError, match="Invalid status"):
        make_service().create(TaskDraft(title="Bad", status="waiting"), actor=ACTOR)


def test_get_unknown_task_raises_not_found(make_service: Callable[..., TaskService]) -> None:
    with pytest.raises(NotFoundError):
        make_service().get("does-not-exist")


def test_update_changes_only_supplied_fields(
    make_service: Callable[..., TaskService],
    clock: ManualClock,
) -> None:
    service = make_service()
    created = service.create(
        TaskDraft(title="Original", description="Keep me", tags=["a"]),
        actor=ACTOR,
    )
    clock.advance(minutes=5)

    updated = service.update(created.id, {"title": "Renamed", "priority": "high"}, actor=ACTOR)

    assert updated.title == "Renamed"
    assert updated.priority is TaskPriority.HIGH
    assert updated.description == "Keep me"
    assert updated.tags == ("a",)
    assert updated.created_at == created.created_at
    assert updated.updated_at == START + timedelta(minutes=5)


def test_update_requires_a_recognized_field(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    created = service.create(TaskDraft(title="Task"), actor=ACTOR)

    with pytest.raises(ValidationError, match="No updates provided"):
        service.update(created.id, {"colour": "red"}, actor=ACTOR)


def test_update_unknown_task_raises_not_found(make_service: Callable[..., TaskService]) -> None:
    with pytest.raises(NotFoundError):
        make_service().update("missing", {"title": "x"}, actor=ACTOR)


def test_update_rejects_null_title(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    created = service.create(TaskDraft(title="Task"), actor=ACTOR)

    with pytest.raises(ValidationError, match="title cannot be null"):
        service.update(created.id, {"title": None}, actor=ACTOR)


def test_update_can_clear_description_and_category(
    make_service: Callable[..., TaskService],
) -> None:
    service = make_service()
    created = service.create(
        TaskDraft(title="Task", description="text", category="ops"),
        actor=ACTOR,
    )

    updated = service.update(created.id, {"description": None, "category": None}, actor=ACTOR)

    assert updated.description is None
    assert updated.category is None


def test_updated_at_increases_even_when_clock_stands_still(
    make_service: Callable[..., TaskService],
) -> None:
    service = make_service()
    created = service.create(TaskDraft(title="Task"), actor=ACTOR)

    first = service.update(created.id, {"status": "blocked"}, actor=ACTOR)
    second = service.update(created.id, {"status": "todo"}, actor=ACTOR)

    assert created.updated_at < first.updated_at < second.updated_at


def test_notes_are_appended_in_order(
    make_service: Callable[..., TaskService],
    clock: ManualClock,
) -> None:
    service = make_service()
    created = service.create(TaskDraft(title="Task"), actor=ACTOR)

    clock.advance(minutes=1)
    service.update(created.id, {"note": "Started"}, actor=ACTOR)
    clock.advance(minutes=1)
    result = service.update(
        created.id,
        {"note": "Waiting on review", "status": "blocked"},
        actor="bob@example.com",
    )

    assert [(entry.note, entry.by) for entry in result.notes] == [
        ("Started", ACTOR),
        ("Waiting on review", "bob@example.com"),
    ]
    assert result.notes[1].timestamp == result.updated_at
    assert result.status is TaskStatus.BLOCKED


def test_blank_note_is_rejected(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    created = service.create(TaskDraft(title="Task"), actor=ACTOR)

    with pytest.raises(ValidationError, match="note must be a non-empty string"):
        service.update(created.id, {"note": "   "}, actor=ACTOR)


def test_archive_and_unarchive_track_archived_at(
    make_service: Callable[..., TaskService],
    clock: ManualClock,
) -> None:
    service = make_service()
    created = service.create(TaskDraft(title="Task"), actor=ACTOR)
    clock.advance(hours=1)

    archived = service.archive(created.id, actor=ACTOR)
    assert archived.archived is True
    assert archived.archived_at == START + timedelta(hours=1)

    clock.advance(hours=1)
    restored = service.update(created.id, {"archived": False}, actor=ACTOR)
    assert restored.archived is False
    assert restored.archived_at is None


def test_archive_unknown_task_raises_not_found(make_service: Callable[..., TaskService]) -> None:
    with pytest.raises(NotFoundError):
        make_service().archive("missing", actor=ACTOR)


def test_list_orders_by_priority_then_newest(
    make_service: Callable[..., TaskService],
    clock: ManualClock,
) -> None:
    service = make_service()
    for title, priority in [
        ("low-old", "low"),
        ("medium-old", "medium"),
        ("urgent", "urgent"),
        ("medium-new", "medium"),
        ("high", "high"),
    ]:
        service.create(TaskDraft(title=title, priority=priority), actor=ACTOR)
        clock.advance(minutes=1)

    titles = [record.title for record in service.list()]

    assert titles == ["urgent", "high", "medium-new", "medium-old", "low-old"]


def test_list_filters_and_limit(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    service.create(
        TaskDraft(title="a", status="blocked", agent="ops", category="infra"),
        actor=ACTOR,
    )
    service.create(TaskDraft(title="b", status="blocked", agent="main"), actor=ACTOR)
    service.create(TaskDraft(title="c", status="todo", agent="ops"), actor=ACTOR)

    assert [r.title for r in service.list(status="blocked", agent="ops")] == ["a"]
    assert [r.title for r in service.list(category="infra")] == ["a"]
    assert len(service.list(limit=2)) == 2


def test_list_excludes_archived_by_default(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    kept = service.create(TaskDraft(title="kept"), actor=ACTOR)
    gone = service.create(TaskDraft(title="gone"), actor=ACTOR)
    service.archive(gone.id, actor=ACTOR)

    assert [r.id for r in service.list()] == [kept.id]
    assert [r.id for r in service.list(archived=True)] == [gone.id]


def test_list_validates_limit(make_service: Callable[..., TaskService]) -> None:
    service = make_service(max_list_limit=50)

    with pytest.raises(ValidationError, match="limit must be >= 1"):
        service.list(limit=0)
    with pytest.raises(ValidationError, match="limit must be <= 50"):
        service.list(limit=51)


def test_list_runs_archive_sweep_first(
    make_service: Callable[..., TaskService],
    clock: ManualClock,
) -> None:
    service = make_service(sweep=True)
    stale = service.create(TaskDraft(title="stale", status="done"), actor=ACTOR)
    clock.advance(days=6)
    fresh = service.create(TaskDraft(title="fresh", status="done"), actor=ACTOR)
    clock.advance(days=2)

    active = service.list()
    archived = service.list(archived=True)

    assert [r.id for r in active] == [fresh.id]
    assert [r.id for r in archived] == [stale.id]
    assert archived[0].archived_at == clock.now


def test_list_agents_skips_archived_tasks(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    service.create(TaskDraft(title="a", agent="zeta"), actor=ACTOR)
    service.create(TaskDraft(title="b", agent="alpha"), actor=ACTOR)
    service.create(TaskDraft(title="c", agent="alpha"), actor=ACTOR)
    hidden = service.create(TaskDraft(title="d", agent="ghost"), actor=ACTOR)
    service.archive(hidden.id, actor=ACTOR)

    assert service.list_agents() == ["alpha", "zeta"]


def test_list_treats_blank_filters_as_absent(make_service: Callable[..., TaskService]) -> None:
    service = make_service()
    service.create(TaskDraft(title="a", category="infra", agent="ops"), actor=ACTOR)
    service.create(TaskDraft(title="b"), actor=ACTOR)

    records = service.list(status="", priority=" ", category="", agent="  ")

    assert {r.title for r in records} == {"a", "b"}
    with pytest.raises(ValidationError):
        service.list(status="waiting")
