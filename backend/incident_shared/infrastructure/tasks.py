"""
Fire-and-forget task group.

Report creation returns as soon as the row is committed; the live-listener
publish and the push fan-out then run as independent tasks owned by this
group. A failing task is logged inside its own boundary and never reaches
the request that spawned it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from incident_shared.config.logging import get_logger

logger = get_logger(__name__)


class BackgroundTaskGroup:
    """
    Owns fire-and-forget tasks.

    - Keeps a strong reference to every pending task (the event loop only
      keeps weak ones).
    - Catches and logs every exception at the task boundary.
    - ``drain()`` waits for pending tasks; used on shutdown and in tests.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        """
        Schedule ``coro`` on the running loop without awaiting it.

        Returns the task, or None when the group is closed (shutdown in
        progress); the coroutine is closed so it never runs.
        """
        if self._closed:
            coro.close()
            logger.warning("Task group closed, dropping task", task=name)
            return None

        task = asyncio.get_running_loop().create_task(self._guard(name, coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, name: str, coro: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            logger.warning("Background task cancelled", task=name)
            raise
        except Exception as e:
            logger.error("Background task failed", task=name, error=str(e), exc_info=True)
            return None

    async def drain(self, timeout: float | None = None) -> None:
        """
        Wait for every pending task to settle.

        Tasks still running after ``timeout`` are cancelled.
        """
        while self._tasks:
            pending = list(self._tasks)
            done, still_running = await asyncio.wait(pending, timeout=timeout)
            if still_running:
                logger.warning("Background tasks did not settle, cancelling", remaining=len(still_running))
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
                return

    async def close(self, timeout: float | None = None) -> None:
        """Stop accepting tasks and drain the ones in flight."""
        self._closed = True
        await self.drain(timeout=timeout)
