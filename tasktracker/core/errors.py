from __future__ import annotations


class TaskTrackerError(Exception):
    """Base class for errors surfaced to API callers.

    ``code`` is the stable machine-readable identifier placed in the error
    envelope; ``status_code`` is the HTTP status the API answers with.
    """

    code = "TASK_TRACKER_ERROR"
    status_code = 500

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class ValidationError(TaskTrackerError):
    """A required field is missing or a value is outside its allowed set."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(TaskTrackerError):
    """The request carries no credential or one that cannot be verified."""

    code = "UNAUTHORIZED"
    status_code = 401


class NotFoundError(TaskTrackerError):
    code = "TASK_NOT_FOUND"
    status_code = 404


class StorageError(TaskTrackerError):
    """The underlying store rejected or failed a statement."""

    code = "STORAGE_ERROR"
    status_code = 500
