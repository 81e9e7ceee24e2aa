from tasktracker.services.archive_sweep import (
    DEFAULT_RETENTION_DAYS,
    ArchiveSweep,
    build_archive_sweep,
)
from tasktracker.services.task_service import (
    RECOGNIZED_PATCH_FIELDS,
    NoteEntry,
    TaskDraft,
    TaskRecord,
    TaskService,
    build_task_service,
)

__all__ = [
    "DEFAULT_RETENTION_DAYS",
    "RECOGNIZED_PATCH_FIELDS",
    "ArchiveSweep",
    "NoteEntry",
    "TaskDraft",
    "TaskRecord",
    "TaskService",
    "build_archive_sweep",
    "build_task_service",
]
