"""Route registry with shared middleware and a path prefix."""

from __future__ import annotations

from collections.abc import Iterable

from wren._internal.types import Middleware
from wren.errors import ConfigurationError
from wren.routing.route import Route


class Router:
    """Factory and registry for routes.

    Shared middleware registered with ``use()`` is captured by each route
    when it is created, so middleware added later does not reach routes
    declared earlier.

    Usage::

        api = Router("/api")
        api.use(authenticate)
        api.get("/users/:id", show_user)
        api.route("/users").get(list_users).post(create_user)

        app.use(api)
    """

    __slots__ = ("_frozen", "_middleware", "_prefix", "_routes")

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix
        self._middleware: list[Middleware] = []
        self._routes: list[Route] = []
        self._frozen = False

    def prefix(self, value: str) -> Router:
        """Set the path prefix for all routes, including existing ones."""
        self._check_not_frozen()
        self._prefix = value
        for route in self._routes:
            route.prefix(value)
        return self

    def routes(self) -> list[Route]:
        """Return the registered routes in declaration order."""
        return list(self._routes)

    def route(self, path: str) -> Route:
        """Create, register and return a new route."""
        self._check_not_frozen()
        route = Route(path, self._prefix, middleware=self._middleware)
        self._routes.append(route)
        return route

    def use(self, *middleware: Middleware) -> Router:
        """Add shared middleware for routes declared after this call."""
        self._check_not_frozen()
        for fn in middleware:
            if not callable(fn):
                msg = f"Middleware must be callable, got {type(fn).__name__}."
                raise ConfigurationError(msg)
            self._middleware.append(fn)
        return self

    # -- Method sugar --

    def head(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).head(*handlers)

    def get(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).get(*handlers)

    def post(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).post(*handlers)

    def put(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).put(*handlers)

    def patch(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).patch(*handlers)

    def delete(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).delete(*handlers)

    def options(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).options(*handlers)

    def all(self, path: str, *handlers: Middleware) -> Route:
        return self.route(path).all(*handlers)

    def any(self, methods: Iterable[str], path: str, *handlers: Middleware) -> Route:
        return self.route(path).any(methods, *handlers)

    # -- Compilation --

    def freeze(self) -> None:
        """Freeze the router and its routes. Called when the app compiles."""
        self._frozen = True
        for route in self._routes:
            route.freeze()

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "Cannot modify a router after it has been compiled."
            raise ConfigurationError(msg)

    def __repr__(self) -> str:
        return f"<Router prefix={self._prefix!r} routes={len(self._routes)}>"
