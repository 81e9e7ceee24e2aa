from __future__ import annotations

from tasktracker.core.config import get_settings
from tasktracker.core.logging import get_logger
from tasktracker.db.engine import ensure_database_parent_dir
from tasktracker.db.migrations import upgrade_to_head

logger = get_logger("tasktracker.db.bootstrap")


def initialize_database(database_url: str | None = None) -> None:
    target_url = database_url or get_settings().database_url
    ensure_database_parent_dir(target_url)
    upgrade_to_head(target_url)
    logger.info("database.initialized")
