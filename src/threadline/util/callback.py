"""Invoke callbacks that may be plain functions or coroutines."""

import inspect
from typing import Any, Callable


async def call_callback(callback: Callable[..., Any], *args: Any) -> Any:
    """Call a callback, awaiting the result when it is awaitable."""
    result = callback(*args)
    if inspect.isawaitable(result):
        return await result
    return result
