"""Invoke helpers — call sync or async callables uniformly.

Route handlers and data-store updates can be ``def`` or ``async def``.
Any code that calls a user-provided function must handle both cases.
This module keeps the sync/async check in exactly one place.

Usage::

    from perch._internal.invoke import invoke

    result = await invoke(handler, ctx)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable.

    Works with both sync and async callables::

        # sync: returns immediately
        await invoke(lambda n: n + 1, 41)

        # async: coroutine awaited automatically
        async def fetch_count(n):
            return n + await remote_delta()

        await invoke(fetch_count, 41)
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
