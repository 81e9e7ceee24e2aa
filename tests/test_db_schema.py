from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tasktracker.db.bootstrap import initialize_database
from tasktracker.db.cli import main as db_cli_main
from tasktracker.db.engine import create_engine_from_url
from tasktracker.db.enums import TaskStatus
from tasktracker.db.migrations import current_revision, head_revision, upgrade_to_head
from tasktracker.db.models import Task, utc_now


def _to_sqlite_url(path: Path) -> str:
    return f"sqlite:///{path.as_posix()}"


def test_migrations_create_expected_schema(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "schema.db")
    initialize_database(database_url=db_url)

    engine = create_engine_from_url(db_url)
    try:
        inspector = inspect(engine)
        assert {"tasks", "task_notes"}.issubset(set(inspector.get_table_names()))

        tasks_columns = {column["name"] for column in inspector.get_columns("tasks")}
        assert tasks_columns == {
            "id",
            "title",
            "description",
            "status",
            "priority",
            "category",
            "tags",
            "agent",
            "created_by",
            "created_at",
            "updated_at",
            "archived",
            "archived_at",
        }
        notes_columns = {column["name"] for column in inspector.get_columns("task_notes")}
        assert notes_columns == {"id", "task_id", "note", "author", "created_at"}

        task_indexes = {index["name"] for index in inspector.get_indexes("tasks")}
        assert {
            "ix_tasks_status",
            "ix_tasks_agent",
            "ix_tasks_archived",
            "ix_tasks_archived_status_updated_at",
        }.issubset(task_indexes)
    finally:
        engine.dispose()


def test_check_constraints_reject_unknown_status(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "constraints.db")
    upgrade_to_head(db_url)

    engine = create_engine_from_url(db_url)
    try:
        with Session(engine) as session:
            session.add(Task(title="Broken", status="waiting", created_by="alice@example.com"))
            with pytest.raises(IntegrityError):
                session.commit()
    finally:
        engine.dispose()


def test_migration_is_idempotent(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "twice.db")
    assert current_revision(db_url) is None

    upgrade_to_head(db_url)
    upgrade_to_head(db_url)

    assert current_revision(db_url) == head_revision() == "8f2d6a1c5e47"

    engine = create_engine_from_url(db_url)
    try:
        assert "tasks" in inspect(engine).get_table_names()
    finally:
        engine.dispose()


def test_db_cli_init_creates_nested_database(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    db_path = tmp_path / "nested" / "dir" / "cli.db"

    assert db_cli_main(["init", "--database-url", _to_sqlite_url(db_path)]) == 0

    assert db_path.exists()
    assert "Database initialized." in capsys.readouterr().out


def test_db_cli_sweep_archives_stale_done_tasks(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    db_url = _to_sqlite_url(tmp_path / "sweep.db")
    assert db_cli_main(["migrate", "--database-url", db_url]) == 0
    assert "revision 8f2d6a1c5e47" in capsys.readouterr().out

    engine = create_engine_from_url(db_url)
    stale_at = utc_now() - timedelta(days=10)
    try:
        with Session(engine) as session:
            session.add(
                Task(
                    title="Old release",
                    status=TaskStatus.DONE,
                    created_by="alice@example.com",
                    created_at=stale_at,
                    updated_at=stale_at,
                )
            )
            session.add(Task(title="Fresh", status=TaskStatus.DONE, created_by="alice@example.com"))
            session.commit()

        capsys.readouterr()
        assert db_cli_main(["sweep", "--database-url", db_url, "--retention-days", "7"]) == 0
        assert "Archived 1 task(s)." in capsys.readouterr().out

        with Session(engine) as session:
            statement = select(Task.title).where(Task.archived == True)  # noqa: E712
            archived_titles = session.exec(statement).all()
        assert list(archived_titles) == ["Old release"]
    finally:
        engine.dispose()


def test_db_cli_sweep_rejects_invalid_retention(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        db_cli_main(
            ["sweep", "--database-url", _to_sqlite_url(tmp_path / "x.db"), "--retention-days", "0"]
        )
