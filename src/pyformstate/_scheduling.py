"""Debounce timers and background task tracking on the running event loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

_logger = logging.getLogger(__name__)


class TaskTracker:
    """Keep strong references to fire-and-forget tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, awaitable: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Background task failed", exc_info=exc)

    def __len__(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait for every task spawned so far (and those they spawn)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()


class Debouncer:
    """Per-key trailing-edge debounce.

    A new request for a key cancels the pending timer for that key (last
    write wins). When the timer fires, the callback runs; if it returns an
    awaitable, the awaitable is tracked as a background task. Work already
    in flight is never cancelled by a newer request.
    """

    def __init__(self, delay: float, tasks: TaskTracker | None = None) -> None:
        self.delay = delay
        self._tasks = tasks if tasks is not None else TaskTracker()
        self._handles: dict[Hashable, asyncio.TimerHandle] = {}

    @property
    def tasks(self) -> TaskTracker:
        return self._tasks

    def call(self, key: Hashable, callback: Callable[[], Any]) -> bool:
        """Schedule *callback* for *key*; return ``False`` when no loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.debug("No running event loop; cannot debounce %s", key)
            return False
        self.cancel(key)
        self._handles[key] = loop.call_later(self.delay, self._fire, key, callback)
        return True

    def _fire(self, key: Hashable, callback: Callable[[], Any]) -> None:
        self._handles.pop(key, None)
        result = callback()
        if inspect.isawaitable(result):
            self._tasks.spawn(result)

    def pending(self, key: Hashable) -> bool:
        return key in self._handles

    def cancel(self, key: Hashable) -> None:
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        """Cancel every pending timer; tasks already running are left alone."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
