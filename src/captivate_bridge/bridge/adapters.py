"""Adapters from Captivate's callback style to asyncio awaitables."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Mapping, Tuple


def promiseify(func: Callable[..., Any]) -> Callable[..., "asyncio.Future[Any]"]:
    """Wrap ``func`` so it returns a future instead of taking a callback.

    The wrapper appends a completion callback as the final argument and
    resolves the future with the first value that callback receives. A
    synchronous exception from ``func`` rejects the future. Must be called
    from within a running event loop.
    """

    def wrapper(*args: Any) -> "asyncio.Future[Any]":
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def _resolve(value: Any = None) -> None:
            if not future.done():
                future.set_result(value)

        try:
            func(*args, _resolve)
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        return future

    wrapper.__name__ = getattr(func, "__name__", "promised")
    wrapper.__wrapped__ = func  # type: ignore[attr-defined]
    return wrapper


def wrap_members(
    members: Iterable[Tuple[str, Any]],
    is_method: Callable[[Any], bool] = callable,
) -> Mapping[str, Any]:
    """Promiseify every method in ``members``; other members pass through."""

    wrapped = {}
    for name, member in members:
        wrapped[name] = promiseify(member) if is_method(member) else member
    return wrapped
