"""
Fire-and-forget task runner for work that outlives a response.

A handler submits coroutines that must not delay the response (touching
lastAccessedAt, refreshing a stale entry, appending history). Submitted
tasks are never awaited by the response path. Before the Lambda returns,
the handler drains the runner so the execution context is not frozen with
work in flight.
"""

import asyncio
import logging
from typing import Awaitable

from .errors import sanitize_error

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Holds strong references to submitted tasks until they finish."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def submit(self, coro: Awaitable, name: str = "background") -> asyncio.Task:
        """Schedule coro on the running loop without awaiting it."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, name))
        return task

    def _on_done(self, task: asyncio.Task, name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {name} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task {name} failed: {sanitize_error(str(error))}",
                extra={"task": name, "error_type": type(error).__name__},
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task, including ones submitted meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
