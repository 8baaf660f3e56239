"""Task scheduler shared by the streaming calls of one or more clients."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class StreamScheduler:
    """Spawns and tracks the background tasks that feed event streams.

    There is no limit on concurrent tasks. Whoever creates the scheduler
    owns its lifecycle and must call ``aclose()`` when done.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(
        self, coro: Coroutine[Any, Any, None], *, name: str | None = None
    ) -> "asyncio.Task[None]":
        """Start ``coro`` as a task on the running event loop.

        Raises:
            RuntimeError: If the scheduler has been shut down
        """
        if self._closed:
            coro.close()
            raise RuntimeError("StreamScheduler is shut down")
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join(self) -> None:
        """Wait until every task spawned so far has finished."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def aclose(self) -> None:
        """Refuse new work, cancel running tasks and wait for them."""
        self._closed = True
        tasks = set(self._tasks)
        if not tasks:
            return
        logger.debug("Cancelling %d stream task(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
