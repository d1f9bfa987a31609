"""Background task ownership for tracker components."""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import Executor
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ScopeClosedError(RuntimeError):
    """Raised when work is submitted to a scope that has been closed."""


class BackgroundScope:
    """Own the asyncio tasks launched by one component.

    Blocking storage calls go through :meth:`run_io`, which hands them to the
    loop's executor. :meth:`close` cancels everything still running so that
    no task updates component state after teardown.
    """

    def __init__(self, *, executor: Executor | None = None) -> None:
        self._loop = asyncio.get_running_loop()
        self._executor = executor
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def outstanding(self) -> int:
        return len(self._tasks)

    def launch(self, coro: Coroutine[Any, Any, R]) -> asyncio.Task[R]:
        if self._closed:
            coro.close()
            raise ScopeClosedError(f"{type(self).__name__} is closed")
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                exc_info=exc,
                extra={"component": type(self).__name__, "task": task.get_name()},
            )

    async def run_io(self, func: Callable[..., R], *args: Any) -> R:
        """Run a blocking call off the event loop thread."""

        return await self._loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def join(self) -> None:
        """Wait until no launched task is outstanding."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding work and refuse new tasks."""

        if self._closed:
            return
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._on_close()
        logger.debug("Closed background scope", extra={"component": type(self).__name__, "cancelled": len(tasks)})

    def _on_close(self) -> None:
        """Release component resources once all tasks are finished."""


__all__ = ["BackgroundScope", "ScopeClosedError"]
