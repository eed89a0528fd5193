"""Per-request context and the store it is built from.

The ``ContextStore`` accumulates registrations during setup:

- **shared** values (``set``) are returned verbatim by every context,
- **bound** factories (``bind``) are computed lazily, once per context.

On the first ``create()`` the store takes an immutable snapshot and
rejects further registration. Each ``Context`` owns its request-scoped
fields, the properties handlers attach to it and an arena of resolved
bound values; the snapshot is shared.

Thread safety:
    Registration is single-threaded setup. ``freeze()`` uses a Lock with
    a double-check so exactly one thread takes the snapshot. After that
    the snapshot is read-only and safe to share between requests.
"""

import threading
from collections.abc import Mapping
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any

from wren._internal.types import Factory
from wren.errors import ConfigurationError

RESERVED: frozenset[str] = frozenset({"request", "response", "params", "error"})


class _Snapshot:
    """Frozen registrations shared by every context of one store."""

    __slots__ = ("bound", "shared")

    def __init__(self, shared: dict[str, Any], bound: dict[str, Factory]) -> None:
        self.shared: Mapping[str, Any] = MappingProxyType(dict(shared))
        self.bound: Mapping[str, Factory] = MappingProxyType(dict(bound))


class Context:
    """A per-request property bag.

    Well-known fields are plain slots. Anything else assigned on the
    context (``ctx.user = ...`` or ``ctx.set("user", ...)``) lives in this
    request's locals. Reads go through ``get()``: locals first, then the
    store's bound and shared registrations, so ``ctx.db`` works for a
    name registered with ``bind("db", ...)``.

    Usage::

        def authenticate(ctx, next):
            ctx.user = ctx.get("users").find(ctx.request.headers["x-user"])
            next()

        def show(ctx):
            return {"name": ctx.user.name}
    """

    __slots__ = ("_locals", "_resolved", "_snapshot", "error", "params", "request", "response")

    def __init__(
        self,
        snapshot: _Snapshot,
        request: Any = None,
        response: Any = None,
    ) -> None:
        self._snapshot = snapshot
        self._locals: dict[str, Any] = {}
        self._resolved: dict[str, Any] = {}
        self.request = request
        self.response = response
        self.params: dict[str, str] = {}
        self.error: BaseException | None = None

    def set(self, name: str, value: Any) -> None:
        """Attach a request-scoped property, shadowing any store registration."""
        if name in RESERVED or name.startswith("_") or hasattr(Context, name):
            msg = f"{name!r} is a reserved context field and cannot be set as a property."
            raise AttributeError(msg)
        self._locals[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        """Resolve a request-scoped, bound or shared property.

        Bound factories run on first access and their result is kept in
        this context's arena, including ``None`` results.
        """
        if name in self._locals:
            return self._locals[name]
        if name in self._resolved:
            return self._resolved[name]
        factory = self._snapshot.bound.get(name)
        if factory is not None:
            value = factory(self)
            self._resolved[name] = value
            return value
        return self._snapshot.shared.get(name, default)

    def has(self, name: str) -> bool:
        """True if *name* is set on this context or registered in the store."""
        return (
            name in self._locals
            or name in self._snapshot.bound
            or name in self._snapshot.shared
        )

    def resolved(self, name: str) -> bool:
        """True if the bound property *name* was already computed here."""
        return name in self._resolved

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FIELDS:
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not slots.
        if name.startswith("_") or not self.has(name):
            msg = f"Context has no property {name!r}"
            raise AttributeError(msg)
        return self.get(name)

    def __repr__(self) -> str:
        request = self.request
        target = (
            f"{request.method} {request.url}"
            if hasattr(request, "method") and hasattr(request, "url")
            else repr(request)
        )
        return f"<Context {target} params={self.params!r} error={self.error!r}>"


_FIELDS: frozenset[str] = frozenset(Context.__slots__)


class ContextStore:
    """Builder for request contexts.

    Usage::

        store = ContextStore()
        store.set("settings", settings)
        store.bind("db", lambda ctx: Session(settings.dsn))

        ctx = store.create(request, response)
        ctx.get("db") is ctx.get("db")  # factory ran once
    """

    __slots__ = ("_bound", "_freeze_lock", "_shared", "_snapshot")

    def __init__(self) -> None:
        self._shared: dict[str, Any] = {}
        self._bound: dict[str, Factory] = {}
        self._snapshot: _Snapshot | None = None
        self._freeze_lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._snapshot is not None

    def set(self, name: str, value: Any) -> None:
        """Register a shared value, replacing any previous registration."""
        self._check_registration(name)
        self._bound.pop(name, None)
        self._shared[name] = value

    def bind(self, name: str, factory: Factory) -> None:
        """Register a per-context factory, invoked with the context."""
        self._check_registration(name)
        if not callable(factory):
            msg = f"Factory for {name!r} must be callable, got {type(factory).__name__}."
            raise ConfigurationError(msg)
        self._shared.pop(name, None)
        self._bound[name] = factory

    def get(self, name: str, default: Any = None) -> Any:
        """Return the registration for *name* without invoking factories.

        Shared names return their value; bound names return the factory.
        """
        if name in self._bound:
            return self._bound[name]
        return self._shared.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._shared or name in self._bound

    def freeze(self) -> None:
        """Take the immutable snapshot used by ``create()``."""
        if self._snapshot is not None:
            return
        with self._freeze_lock:
            if self._snapshot is None:
                self._snapshot = _Snapshot(self._shared, self._bound)

    def create(self, request: Any = None, response: Any = None) -> Context:
        """Return a fresh context; freezes the store on first use."""
        self.freeze()
        assert self._snapshot is not None
        return Context(self._snapshot, request=request, response=response)

    def _check_registration(self, name: str) -> None:
        if self._snapshot is not None:
            msg = (
                f"Cannot register {name!r}: the context store is frozen. "
                "Register shared and bound properties before the first request."
            )
            raise ConfigurationError(msg)
        if name in RESERVED or hasattr(Context, name):
            msg = f"{name!r} is a reserved context field."
            raise ConfigurationError(msg)
        if not name.isidentifier():
            msg = f"Context property names must be identifiers, got {name!r}."
            raise ConfigurationError(msg)


# -- Current context --

context_var: ContextVar[Context] = ContextVar("wren_context")
"""The context being dispatched. Set by the app around each dispatch."""


def get_context() -> Context:
    """Return the context of the request being dispatched.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()
