"""Tracking for background asyncio tasks spawned by the bot.

Startup work (recovery, slash command sync) and the gateway connection run as
fire-and-forget tasks. Registering them here keeps a strong reference, logs
their failures, and lets shutdown cancel whatever is still running.
"""

from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

from modmail.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TaskRegistry:
    """Registry of running background tasks.

    Example:
        registry = TaskRegistry()
        registry.spawn(engine.run(), name="recovery")
        await registry.shutdown(timeout=5.0)
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[object]] = set()

    def _on_task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    def spawn(self, coro: Coroutine[object, object, T], name: str | None = None) -> asyncio.Task[T]:
        """Start ``coro`` as a tracked task.

        Completed tasks drop out of the registry on their own.
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)  # type: ignore[arg-type]
        task.add_done_callback(self._on_task_done)  # type: ignore[arg-type]
        logger.debug("Spawned tracked task: %s (total: %d)", task.get_name(), len(self._tasks))
        return task

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel all tracked tasks and wait up to ``timeout`` seconds for them."""
        if not self._tasks:
            return

        task_count = len(self._tasks)
        logger.info("Shutting down %d tracked tasks (timeout=%.1fs)", task_count, timeout)
        for task in self._tasks:
            if not task.done():
                task.cancel()

        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            logger.warning("Task %s still pending after %.1fs", task.get_name(), timeout)

    def task_count(self) -> int:
        return len(self._tasks)
