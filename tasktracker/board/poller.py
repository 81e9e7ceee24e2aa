from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress

from tasktracker.core.logging import get_logger

logger = get_logger("tasktracker.board.poller")

DEFAULT_POLL_INTERVAL_SECONDS = 30.0


class VisibilityPoller:
    """Runs ``poll`` on a fixed interval, but only while the board is visible.

    ``poll`` returns False to end polling, e.g. once the session has expired.
    Becoming visible polls immediately and restarts the loop; hiding cancels it.
    """

    def __init__(
        self,
        poll: Callable[[], Awaitable[bool]],
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        visible: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")
        self._poll = poll
        self._interval_seconds = interval_seconds
        self._visible = visible
        self._task: asyncio.Task[None] | None = None

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if not self._visible or self.running:
            return
        keep_polling = await self._poll_once()
        # Visibility may have changed, or another start won, while the first poll ran.
        if keep_polling and self._visible and not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def set_visible(self, visible: bool) -> None:
        if visible == self._visible:
            return
        self._visible = visible
        logger.debug("board.visibility_changed", visible=visible)
        if visible:
            await self.start()
        else:
            await self.stop()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            if self._task is not asyncio.current_task():
                return
            if not await self._poll_once():
                self._task = None
                logger.info("board.polling_stopped")
                return

    async def _poll_once(self) -> bool:
        try:
            return await self._poll()
        except Exception:
            logger.exception("board.poll_failed")
            return True
