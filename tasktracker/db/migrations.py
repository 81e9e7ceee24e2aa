from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from alembic import command
from tasktracker.core.config import get_settings
from tasktracker.db.engine import create_engine_from_url, ensure_database_parent_dir

REPOSITORY_ROOT = Path(__file__).resolve().parents[2]
ALEMBIC_INI_PATH = REPOSITORY_ROOT / "alembic.ini"
ALEMBIC_SCRIPT_LOCATION = REPOSITORY_ROOT / "alembic"


def _resolve_url(database_url: str | None) -> str:
    return database_url or get_settings().database_url


def build_alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(ALEMBIC_INI_PATH))
    config.set_main_option("script_location", str(ALEMBIC_SCRIPT_LOCATION))
    config.set_main_option("sqlalchemy.url", _resolve_url(database_url))
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(build_alembic_config()).get_current_head()


def current_revision(database_url: str | None = None) -> str | None:
    """Revision stamped in the database, or None for an unmigrated one."""
    engine = create_engine_from_url(_resolve_url(database_url))
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def upgrade_to_head(database_url: str | None = None) -> None:
    target_url = _resolve_url(database_url)
    ensure_database_parent_dir(target_url)
    command.upgrade(build_alembic_config(target_url), "head")
