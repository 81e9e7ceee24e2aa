from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from tasktracker.core.errors import StorageError
from tasktracker.core.logging import get_logger

logger = get_logger("tasktracker.services.storage")


@contextmanager
def storage_guard(session: Session, *, operation: str) -> Iterator[None]:
    """Translate driver failures into ``StorageError`` after rolling back."""
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("storage.failed", operation=operation)
        raise StorageError("Task storage failed to complete the request.") from exc
