from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine, make_url
from sqlmodel import create_engine

from tasktracker.core.config import Settings


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).drivername.split("+", maxsplit=1)[0] == "sqlite"


def _sqlite_connect_args(database_url: str) -> dict[str, bool]:
    return {"check_same_thread": False} if _is_sqlite(database_url) else {}


def create_engine_from_url(database_url: str, *, echo: bool = False) -> Engine:
    return create_engine(
        database_url,
        echo=echo,
        connect_args=_sqlite_connect_args(database_url),
        pool_pre_ping=not _is_sqlite(database_url),
    )


def create_engine_from_settings(settings: Settings) -> Engine:
    # SQLALCHEMY_ECHO wins; otherwise echo only in debug outside of tests
    if settings.sqlalchemy_echo is not None:
        echo = settings.sqlalchemy_echo
    else:
        echo = settings.debug and not settings.testing
    return create_engine_from_url(settings.database_url, echo=echo)


def resolve_sqlite_database_path(database_url: str) -> Path | None:
    if not _is_sqlite(database_url):
        return None

    database = make_url(database_url).database
    if database is None or database in {"", ":memory:"}:
        return None

    db_path = Path(database)
    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()
    return db_path


def ensure_database_parent_dir(database_url: str) -> None:
    db_path = resolve_sqlite_database_path(database_url)
    if db_path is None:
        return
    db_path.parent.mkdir(parents=True, exist_ok=True)
