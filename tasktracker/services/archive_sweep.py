from __future__ import annotations

from datetime import datetime, timedelta

from sqlmodel import Session

from tasktracker.core.config import Settings
from tasktracker.core.logging import get_logger
from tasktracker.db.models import as_utc, utc_now
from tasktracker.db.repositories import TaskRepository
from tasktracker.services.storage import storage_guard

DEFAULT_RETENTION_DAYS = 7

logger = get_logger("tasktracker.services.archive_sweep")


class ArchiveSweep:
    """Moves tasks that have sat in ``done`` past the retention window into the archive.

    The sweep is one bulk UPDATE guarded by ``archived = false``, so running it
    again, or from several requests at once, only ever archives each task once.
    """

    def __init__(self, *, retention_days: int = DEFAULT_RETENTION_DAYS) -> None:
        if retention_days <= 0:
            raise ValueError("retention_days must be greater than 0")
        self._retention = timedelta(days=retention_days)

    @property
    def retention(self) -> timedelta:
        return self._retention

    def cutoff(self, now: datetime) -> datetime:
        return as_utc(now) - self._retention

    def run_once(self, *, session: Session, now: datetime | None = None) -> int:
        sweep_now = as_utc(now or utc_now())
        cutoff = self.cutoff(sweep_now)
        with storage_guard(session, operation="archive_sweep"):
            archived_count = TaskRepository(session).archive_done_before(
                cutoff=cutoff,
                now=sweep_now,
            )
            session.commit()
        if archived_count > 0:
            logger.info(
                "archive_sweep.completed",
                archived_count=archived_count,
                cutoff=cutoff.isoformat(),
            )
        return archived_count


def build_archive_sweep(settings: Settings) -> ArchiveSweep:
    return ArchiveSweep(retention_days=settings.archive_retention_days)
