"""
Trailing-edge debounce for coroutine functions on the running event loop.

Only the last call inside the quiet window starts a cycle. Cycles already
running are never cancelled, so a slow earlier cycle may finish after a newer
one; callers that care compare generations (see ``Workbench``).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

log = logging.getLogger(__name__)


class Debouncer:
    def __init__(self, func: Callable[..., Awaitable[Any]], wait: float = 0.5):
        self._func = func
        self.wait = wait
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._idle.clear()
        self._handle = loop.call_later(self.wait, self._fire, args, kwargs)

    def cancel(self) -> None:
        """Drop a pending (not yet started) call."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if not self._tasks:
            self._idle.set()

    def _fire(self, args, kwargs) -> None:
        self._handle = None
        task = asyncio.ensure_future(self._func(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Debounced call failed: %s", task.exception())
        if not self._tasks and self._handle is None:
            self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no call is pending and every started cycle has finished."""
        await self._idle.wait()
