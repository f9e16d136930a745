"""
Single-slot delayed call scheduler.

Holds at most one pending call. Scheduling a new call cancels the
previous one, so a burst of schedule() calls collapses into a single
call fired `delay` after the last of them.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional

from tabpilot.config import get_logger

logger = get_logger(__name__)


class SingleSlotScheduler:
    """
    Debounce primitive on top of the running asyncio event loop.

    Attributes:
        calls_fired: Number of scheduled calls that actually ran
    """

    def __init__(self):
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self.calls_fired = 0

    @property
    def pending(self) -> bool:
        """True while a call is scheduled but has not fired yet."""
        return self._handle is not None

    def schedule(self, delay: float, fn: Callable[[], Any]) -> None:
        """
        Schedule fn to run after delay seconds, replacing any pending call.

        Args:
            delay: Quiet period in seconds
            fn: Plain callable or coroutine function taking no arguments
        """
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, fn)

    def cancel(self) -> None:
        """Cancel the pending call, if any. Calls already running are left alone."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def run_now(self, fn: Callable[[], Any]) -> None:
        """Run fn immediately (as a task if it is a coroutine function)."""
        self._fire(fn)

    def spawn(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        """Run an awaitable in the background and track it until it completes."""
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _fire(self, fn: Callable[[], Any]) -> None:
        self._handle = None
        self.calls_fired += 1
        result = fn()
        if inspect.isawaitable(result):
            self.spawn(result)

    async def drain(self) -> None:
        """Wait until every call started so far has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
