"""Wren — a minimal HTTP middleware framework.

Every request gets its own context, runs through an ordered chain of
handlers and is finalized exactly once; the first failure diverts it to
the catcher chain.

Basic usage::

    from wren import App, Router

    app = App()
    users = Router("/users")
    users.get("/:id", lambda ctx: {"id": ctx.params["id"]})
    app.use(users)

    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "Context",
    "ContextStore",
    "DispatchState",
    "Dispatcher",
    "HTTPError",
    "HandlerError",
    "NotFound",
    "Request",
    "Response",
    "Route",
    "Router",
    "Server",
    "WrenError",
    "get_context",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    if name == "App":
        from wren.app import App

        return App

    if name == "AppConfig":
        from wren.config import AppConfig

        return AppConfig

    if name in ("Context", "ContextStore", "get_context"):
        from wren import context as _ctx

        return getattr(_ctx, name)

    if name in ("Dispatcher", "DispatchState"):
        from wren import dispatcher as _dispatcher

        return getattr(_dispatcher, name)

    if name == "Request":
        from wren.http.request import Request

        return Request

    if name == "Response":
        from wren.http.response import Response

        return Response

    if name in ("Route", "Router"):
        from wren import routing as _routing

        return getattr(_routing, name)

    if name == "Server":
        from wren.server.runner import Server

        return Server

    if name in ("WrenError", "ConfigurationError", "HTTPError", "HandlerError", "NotFound"):
        from wren import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
