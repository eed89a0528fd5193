"""Invoke helpers — call sync or async handlers uniformly.

Wren middleware, terminal handlers, factories and finalizers can be
``def`` or ``async def``. Any code that calls a user-provided callable
goes through :func:`invoke` so the sync/async check lives in one place.

Usage::

    from wren._internal.invoke import invoke

    result = await invoke(handler, ctx, next)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        def load_user(ctx):
            return ctx.db.users.get(ctx.params["id"])

        async def load_user(ctx):
            return await ctx.db.users.fetch(ctx.params["id"])
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
