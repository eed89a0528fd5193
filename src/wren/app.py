"""Wren application class.

Mutable during setup (context properties, routers, global hooks).
Frozen when the first request is handled, when the ASGI lifespan starts,
or when ``freeze()`` is called explicitly.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any

from wren._internal.asgi import Receive, Scope, Send
from wren._internal.types import Factory, Finalizer, Middleware
from wren.config import AppConfig
from wren.context import Context, ContextStore, context_var
from wren.dispatcher import Dispatcher
from wren.errors import ConfigurationError, WrenError
from wren.handlers import INTERNAL_ERROR_MESSAGE
from wren.http.request import Request
from wren.http.response import Response
from wren.routing.route import Route
from wren.routing.router import Router
from wren.server.runner import Server, run_server

logger = logging.getLogger("wren.app")


class App:
    """The wren application.

    Wires the context store, routers and dispatcher together::

        app = App()
        app.bind("db", lambda ctx: Session())
        app.pre(log_request)

        users = Router("/users")
        users.get("/:id", lambda ctx: {"id": ctx.params["id"]})
        app.use(users)

        app.catch(render_error)

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock +
        double-check so exactly one thread compiles the route trie even
        if several workers receive their first request at once.
    """

    __slots__ = (
        "_dispatcher",
        "_freeze_lock",
        "_frozen",
        "_router",
        "_routers",
        "_server",
        "_store",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._store = ContextStore()
        self._dispatcher = Dispatcher()
        # Built-in router behind app.route()
        self._router = Router()
        self._routers: list[Router] = [self._router]
        self._server: Server | None = None
        self._frozen = False
        self._freeze_lock = threading.Lock()

    # -- Context properties --

    def set(self, name: str, value: Any) -> App:
        """Register a shared context property."""
        self._check_not_frozen()
        self._store.set(name, value)
        return self

    def bind(self, name: str, factory: Factory) -> App:
        """Register a per-request context property computed on first access."""
        self._check_not_frozen()
        self._store.bind(name, factory)
        return self

    def get(self, name: str, default: Any = None) -> Any:
        """Return a shared value, or the factory of a bound property."""
        return self._store.get(name, default)

    def has(self, name: str) -> bool:
        return self._store.has(name)

    # -- Routing --

    def use(self, *routers: Router) -> App:
        """Mount routers; their routes are compiled when the app freezes."""
        self._check_not_frozen()
        for router in routers:
            if not isinstance(router, Router):
                msg = f"Expected a Router, got {type(router).__name__}."
                raise ConfigurationError(msg)
            if router not in self._routers:
                self._routers.append(router)
        return self

    def route(self, path: str) -> Route:
        """Create a route on the built-in router."""
        self._check_not_frozen()
        return self._router.route(path)

    # -- Global hooks --

    def pre(self, *fns: Middleware) -> App:
        """Middleware run before every route's own handlers."""
        self._check_not_frozen()
        self._dispatcher.pre(*fns)
        return self

    def post(self, *fns: Middleware) -> App:
        """Middleware run after every route's own handlers, in declared order."""
        self._check_not_frozen()
        self._dispatcher.post(*fns)
        return self

    def catch(self, *fns: Middleware) -> App:
        """Error middleware, entered from the start on the first failure."""
        self._check_not_frozen()
        self._dispatcher.catch(*fns)
        return self

    def finally_(self, fn: Finalizer) -> App:
        """Replace the finalizer that runs once per request."""
        self._check_not_frozen()
        self._dispatcher.finally_(fn)
        return self

    # -- Request handling --

    async def handle(self, request: Request, response: Response | None = None) -> Context:
        """Dispatch one request and return its finished context.

        Raises when a failure escapes the catcher chain or the finalizer.
        """
        self.freeze()
        ctx = self._store.create(request, response if response is not None else Response())
        token = context_var.set(ctx)
        try:
            await self._dispatcher.dispatch(ctx)
        finally:
            context_var.reset(token)
        return ctx

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            logger.debug("ignoring unsupported ASGI scope %r", scope["type"])
            return

        request = Request.from_asgi(scope, receive)
        response = Response(_send=send)
        try:
            await self.handle(request, response)
        except Exception:
            # Nothing past the catcher chain can recover; answer for it.
            logger.exception("unhandled error for %s %s", request.method, request.url)
            if not response.sent:
                await Response(status=500, body=INTERNAL_ERROR_MESSAGE, _send=send).send()

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Freeze at startup so setup mistakes fail before the first request."""
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self.freeze()
                except WrenError as exc:
                    logger.exception("startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Server --

    async def start(self) -> Server:
        """Start a uvicorn server on the running event loop."""
        if self._server is not None:
            msg = "The app is already being served."
            raise RuntimeError(msg)
        self.freeze()
        server = Server(self, self.config)
        await server.start()
        self._server = server
        return server

    async def stop(self) -> None:
        """Stop the server started by ``start()``."""
        server, self._server = self._server, None
        if server is not None:
            await server.stop()

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Serve until interrupted (blocking)."""
        self.freeze()
        config = self.config
        if host is not None or port is not None:
            config = replace(config, host=host or config.host, port=port or config.port)
        run_server(self, config)

    # -- Internal --

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Compile routes and freeze the context store.

        Idempotent and thread-safe; called automatically on first use.
        """
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """MUST only be called while holding _freeze_lock."""
        routes = [route for router in self._routers for route in router.routes()]
        for router in self._routers:
            router.freeze()
        self._dispatcher.compile(routes)
        self._store.freeze()
        self._frozen = True
        logger.debug("app frozen with %d routes", len(routes))

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started handling requests. "
                "Register routes, hooks and context properties before the first request."
            )
            raise RuntimeError(msg)
