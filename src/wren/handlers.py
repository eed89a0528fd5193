"""Built-in chain steps: terminal wrapping, default catcher and finalizer."""

import functools
import logging
from typing import Any

from wren._internal.invoke import invoke
from wren._internal.types import Handler, Middleware, Next
from wren.errors import HTTPError

logger = logging.getLogger("wren.dispatch")

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def wrap_terminal(handler: Handler) -> Middleware:
    """Wrap a route handler as the last middleware of a chain.

    The handler is called with the context only. A returned exception is
    forwarded to ``next(error)``; a truthy result becomes the response
    body unless one is already set. Either way the chain continues so the
    ``post`` stage and the finalizer still run.
    """

    @functools.wraps(handler)
    async def terminal(ctx: Any, next: Next) -> None:
        try:
            result = await invoke(handler, ctx)
        except Exception as exc:
            next(exc)
            return

        if isinstance(result, BaseException):
            next(result)
            return

        response = ctx.response
        if result and response is not None and not response.body:
            response.body = result
        next()

    return terminal


def error_status(error: BaseException) -> int:
    """The HTTP status carried by *error*, 500 when it has none."""
    status = getattr(error, "status", None)
    if isinstance(status, int) and 100 <= status <= 599:
        return status
    return 500


def error_message(error: BaseException) -> str:
    """The client-facing message for *error*.

    Only errors marked ``expose=True`` reveal their message.
    """
    if getattr(error, "expose", False) is not True:
        return INTERNAL_ERROR_MESSAGE
    message = getattr(error, "message", None)
    return message if isinstance(message, str) and message else str(error)


def default_catcher(ctx: Any, next: Next) -> None:
    """Write the recorded error to the response, then finish the chain."""
    error = ctx.error
    status = error_status(error)
    if status >= 500:
        logger.error(
            "%d while dispatching %r",
            status,
            ctx,
            exc_info=(type(error), error, error.__traceback__),
        )
    else:
        logger.debug("%d while dispatching %r: %s", status, ctx, error)

    response = ctx.response
    if response is not None:
        response.status = status
        response.body = error_message(error)
        if isinstance(error, HTTPError):
            for name, value in error.headers:
                response.headers[name] = value
    next()


async def default_finalizer(ctx: Any) -> None:
    """Send the response as it stands."""
    response = ctx.response
    if response is not None:
        await response.send()
