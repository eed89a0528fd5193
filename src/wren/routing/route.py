"""Route builder, path segments and match results."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from wren._internal.types import Middleware
from wren.errors import ConfigurationError
from wren.handlers import wrap_terminal

HTTP_METHODS: frozenset[str] = frozenset(
    {"HEAD", "GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
)


def normalize_path(path: str) -> str:
    """Normalize a route or request path.

    Drops the query string and fragment, ensures a leading slash and
    strips the trailing slash (except for the root)::

        "users/"          -> "/users"
        "/users/42?x=1"   -> "/users/42"
        ""                -> "/"
    """
    for marker in ("?", "#"):
        index = path.find(marker)
        if index != -1:
            path = path[:index]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def join_paths(prefix: str, path: str) -> str:
    """Join a prefix and a path into one normalized path."""
    if not prefix or prefix == "/":
        return normalize_path(path)
    prefix = normalize_path(prefix)
    path = normalize_path(path)
    if path == "/":
        return prefix
    return prefix + path


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:   ``/users``   (kind="static")
    Param:    ``/:id``     (kind="param", param_name="id")
    Wildcard: ``/*rest``   (kind="wildcard", param_name="rest")
    """

    value: str
    kind: str = "static"
    param_name: str | None = None

    @property
    def is_param(self) -> bool:
        return self.kind != "static"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful lookup."""

    method: str
    path: str
    chain: tuple[Middleware, ...]
    params: dict[str, str]
    route: Route | None = None


class Route:
    """An addressable path holding one handler chain per HTTP method.

    Created by ``Router.route()``; mutable until compiled.

    Usage::

        router.route("/users/:id").get(load_user, show_user).delete(remove_user)
    """

    __slots__ = ("_frozen", "_handlers", "_middleware", "_name", "_path", "_prefix")

    def __init__(
        self,
        path: str,
        prefix: str = "",
        *,
        middleware: Iterable[Middleware] = (),
    ) -> None:
        self._path = normalize_path(path)
        self._prefix = normalize_path(prefix) if prefix else ""
        self._name: str | None = None
        self._handlers: dict[str, tuple[Middleware, ...]] = {}
        self._middleware: tuple[Middleware, ...] = tuple(middleware)
        self._frozen = False

    @property
    def path(self) -> str:
        """The effective path: prefix joined with the route path."""
        return join_paths(self._prefix, self._path)

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def methods(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def as_(self, name: str) -> Route:
        """Set the route name (``as`` is a Python keyword)."""
        self._check_not_frozen()
        self._name = name
        return self

    def prefix(self, path: str) -> Route:
        """Set the route prefix."""
        self._check_not_frozen()
        self._prefix = normalize_path(path) if path else ""
        return self

    def handlers(self) -> Iterator[tuple[str, tuple[Middleware, ...]]]:
        """Yield ``(method, chain)`` pairs for compilation."""
        return iter(self._handlers.items())

    def head(self, *handlers: Middleware) -> Route:
        return self.any(["HEAD"], *handlers)

    def get(self, *handlers: Middleware) -> Route:
        return self.any(["HEAD", "GET"], *handlers)

    def post(self, *handlers: Middleware) -> Route:
        return self.any(["POST"], *handlers)

    def put(self, *handlers: Middleware) -> Route:
        return self.any(["PUT"], *handlers)

    def patch(self, *handlers: Middleware) -> Route:
        return self.any(["PATCH"], *handlers)

    def delete(self, *handlers: Middleware) -> Route:
        return self.any(["DELETE"], *handlers)

    def options(self, *handlers: Middleware) -> Route:
        return self.any(["OPTIONS"], *handlers)

    def all(self, *handlers: Middleware) -> Route:
        return self.any(sorted(HTTP_METHODS), *handlers)

    def any(self, methods: Iterable[str], *handlers: Any) -> Route:
        """Register *handlers* for every method in *methods*.

        The last handler is the terminal handler: it receives only the
        context and its return value becomes the response body.
        """
        self._check_not_frozen()
        if not handlers:
            msg = f"At least one route handler is required for {self.path!r}."
            raise ConfigurationError(msg)
        for handler in handlers:
            if not callable(handler):
                msg = (
                    f"Route handler must be callable, got {type(handler).__name__} "
                    f"for {self.path!r}."
                )
                raise ConfigurationError(msg)

        normalized = [m.upper() for m in methods]
        if not normalized:
            msg = f"At least one HTTP method is required for {self.path!r}."
            raise ConfigurationError(msg)
        for method in normalized:
            if method not in HTTP_METHODS:
                msg = f"Unsupported HTTP method {method!r} for {self.path!r}."
                raise ConfigurationError(msg)
            if method in self._handlers:
                msg = f"Method {method!r} already defined for {self.path!r}."
                raise ConfigurationError(msg)

        chain = (*self._middleware, *handlers[:-1], wrap_terminal(handlers[-1]))
        for method in normalized:
            self._handlers[method] = chain
        return self

    def freeze(self) -> None:
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = f"Cannot modify route {self.path!r} after it has been compiled."
            raise ConfigurationError(msg)

    def __repr__(self) -> str:
        methods = ",".join(sorted(self._handlers)) or "-"
        name = f" name={self._name!r}" if self._name else ""
        return f"<Route {methods} {self.path}{name}>"
