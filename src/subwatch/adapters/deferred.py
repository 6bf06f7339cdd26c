"""Deferred update runner.

Hooks hand their work here. Inside an event loop the work becomes a task and
the hook returns straight away; synchronous callers run it in place. Failures
are logged and the work is dropped: there is no retry and no durable queue.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

LOGGER = logging.getLogger(__name__)


class DeferredUpdates:
    """Runs queued work as asyncio tasks on the running loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def add(self, name: str, work: Callable[[], Awaitable[object]]) -> None:
        """Schedule ``work`` on the running loop.

        Synchronous callers have no loop to schedule on; their work runs to
        completion before ``add`` returns. Either way failures are logged,
        never raised to the caller.
        """

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run(name, work))
            return
        task = loop.create_task(self._run(name, work), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, name: str, work: Callable[[], Awaitable[object]]) -> None:
        try:
            await work()
        except Exception:
            self.failed += 1
            LOGGER.exception("Deferred update failed and was dropped: %s", name)

    async def drain(self) -> None:
        """Wait until all queued work, including work queued meanwhile, is done."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))
