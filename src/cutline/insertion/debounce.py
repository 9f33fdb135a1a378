"""Single-slot cancellable scheduling on the asyncio loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)


class DebounceSlot:
    """Holds at most one pending callback; scheduling again replaces it.

    Callbacks may be plain functions or coroutine functions. Coroutines are
    started as tasks when the timer fires; the slot keeps a reference to
    them until they finish.
    """

    def __init__(self, delay: float, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.delay = max(0.0, float(delay))
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._callback: Callable[[], Any] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, callback: Callable[[], Any], delay: float | None = None) -> None:
        """Cancel any pending callback and run ``callback`` after ``delay`` seconds."""

        self.cancel()
        loop = self._resolve_loop()
        wait = self.delay if delay is None else max(0.0, float(delay))
        self._callback = callback
        self._handle = loop.call_later(wait, self._fire)

    def cancel(self) -> bool:
        """Drop the pending callback; return ``True`` if one was pending."""

        handle = self._handle
        self._handle = None
        self._callback = None
        if handle is None:
            return False
        handle.cancel()
        return True

    def flush(self) -> bool:
        """Run the pending callback immediately instead of waiting."""

        if self._handle is None:
            return False
        self._handle.cancel()
        self._fire()
        return True

    async def drain(self) -> None:
        """Wait for coroutine callbacks started by this slot to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is None:
            return
        try:
            result = callback()
        except Exception:
            LOGGER.exception("Debounced callback %r failed", callback)
            return
        if inspect.isawaitable(result):
            task = self._resolve_loop().create_task(_await(result))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Debounced coroutine failed", exc_info=exc)

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()


async def _await(awaitable: Any) -> Any:
    return await awaitable


__all__ = ["DebounceSlot"]
