from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx

from tasktracker.api.tasks import TaskRead
from tasktracker.board.client import SessionExpiredError, TaskApiClient, TaskApiError
from tasktracker.board.kanban import (
    ALL_TASKS_FILTER,
    DragResult,
    StatusMove,
    column_counts,
    group_tasks_by_status,
    resolve_drag,
)
from tasktracker.board.poller import DEFAULT_POLL_INTERVAL_SECONDS, VisibilityPoller
from tasktracker.core.logging import get_logger
from tasktracker.db.enums import TaskStatus

logger = get_logger("tasktracker.board.controller")


class BoardController:
    """Display state for the kanban board.

    The server is the source of truth: every mutation is followed by a full
    refetch instead of merging the response into local state.
    """

    def __init__(
        self,
        api: TaskApiClient,
        *,
        status_filter: str = ALL_TASKS_FILTER,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        on_session_expired: Callable[[], None] | None = None,
    ) -> None:
        self._api = api
        self._status_filter = self._validate_filter(status_filter)
        self._on_session_expired = on_session_expired
        self.tasks: list[TaskRead] = []
        self.last_error: str | None = None
        self.session_active = api.has_credentials
        self.poller = VisibilityPoller(self.refresh, interval_seconds=poll_interval_seconds)

    @property
    def status_filter(self) -> str:
        return self._status_filter

    @property
    def columns(self) -> dict[TaskStatus, list[TaskRead]]:
        return group_tasks_by_status(self.tasks)

    @property
    def counts(self) -> dict[str, int]:
        return column_counts(self.tasks)

    async def refresh(self) -> bool:
        """Refetch tasks. Returns False once the session has expired."""
        status = None if self._status_filter == ALL_TASKS_FILTER else self._status_filter
        try:
            self.tasks = await self._api.list_tasks(status=status)
        except SessionExpiredError:
            self._expire_session()
            return False
        except (TaskApiError, httpx.HTTPError) as exc:
            self.last_error = str(exc)
            logger.warning("board.refresh_failed", error=self.last_error)
            return True
        self.last_error = None
        logger.debug("board.refreshed", task_count=len(self.tasks), status_filter=status)
        return True

    async def set_status_filter(self, status_filter: str) -> None:
        self._status_filter = self._validate_filter(status_filter)
        await self.refresh()

    async def handle_drag_end(self, result: DragResult) -> StatusMove | None:
        move = resolve_drag(result)
        if move is None:
            return None
        try:
            await self._api.update_task(move.task_id, {"status": move.status.value})
        except SessionExpiredError:
            await self._end_session()
            return None
        except (TaskApiError, httpx.HTTPError) as exc:
            logger.warning(
                "board.move_failed",
                task_id=move.task_id,
                status=move.status.value,
                error=str(exc),
            )
            # Put the card back where the server has it.
            await self.refresh()
            self.last_error = str(exc)
            return None
        await self.refresh()
        return move

    async def create_task(self, fields: Mapping[str, Any]) -> TaskRead | None:
        return await self._mutate(lambda: self._api.create_task(fields), action="create")

    async def update_task(self, task_id: str, changes: Mapping[str, Any]) -> TaskRead | None:
        return await self._mutate(lambda: self._api.update_task(task_id, changes), action="update")

    async def archive_task(self, task_id: str) -> TaskRead | None:
        return await self._mutate(lambda: self._api.archive_task(task_id), action="archive")

    async def _mutate(self, call: Callable[[], Any], *, action: str) -> TaskRead | None:
        try:
            task: TaskRead = await call()
        except SessionExpiredError:
            await self._end_session()
            return None
        except (TaskApiError, httpx.HTTPError) as exc:
            self.last_error = str(exc)
            logger.warning("board.action_failed", action=action, error=self.last_error)
            return None
        await self.refresh()
        return task

    async def _end_session(self) -> None:
        self._expire_session()
        await self.poller.stop()

    def _expire_session(self) -> None:
        self._api.clear_credentials()
        self.tasks = []
        if not self.session_active:
            return
        self.session_active = False
        logger.info("board.session_expired")
        if self._on_session_expired is not None:
            self._on_session_expired()

    @staticmethod
    def _validate_filter(status_filter: str) -> str:
        if status_filter == ALL_TASKS_FILTER:
            return status_filter
        return TaskStatus(status_filter).value
