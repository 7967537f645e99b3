"""Trailing-edge debounce on the asyncio loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``action`` once, ``delay_s`` after the most recent call.

    Every call cancels the pending timer and schedules a new one with the
    latest arguments. Coroutine results are run as tasks.
    """

    def __init__(self, action: Callable[..., Any], delay_s: float = 1.0) -> None:
        self._action = action
        self._delay_s = max(0.0, float(delay_s))
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay_s, self._fire, args, kwargs)

    def cancel(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        try:
            result = self._action(*args, **kwargs)
        except Exception:
            logger.exception("debounced action failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("debounced action failed: %s", exc, exc_info=exc)


def debounce(action: Callable[..., Any], delay_s: float = 1.0) -> Debouncer:
    return Debouncer(action, delay_s)
