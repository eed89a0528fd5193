"""Dispatch engine — runs one context through its chain to a single finalization.

Each request gets its own ``_Run``: a cursor into the active chain, a
chain generation and a ``DispatchState``. Steps are pushed onto an
anyio memory stream by ``next()`` and executed one at a time, each after
a checkpoint, so step N+1 starts only once step N's coroutine has
returned and the call stack stays flat however long the chain is.

State machine::

    PENDING ──hit──▶ RUNNING ──next(err)──▶ ERRORED ──exhausted──▶ FINALIZED
       │                 │                     │
       └──miss───────────┼────────▶ ERRORED    └──next(err)──▶ ABORTED (fatal)
                         └──exhausted──────────────────────▶ FINALIZED

Open points settled here:

- ``post`` middleware run in declared order.
- A failure while the catcher chain is running is fatal: the finalizer is
  skipped and ``dispatch()`` raises it for the host to deal with.
"""

import enum
import functools
import logging
import math
import threading
from collections.abc import Iterable
from typing import Any

import anyio
import anyio.lowlevel

from wren._internal.invoke import invoke
from wren._internal.types import Finalizer, Middleware, Next
from wren.context import Context
from wren.errors import ConfigurationError, NotFound, coerce_error
from wren.handlers import default_catcher, default_finalizer
from wren.routing.route import Route, RouteMatch, normalize_path
from wren.routing.tree import RouteTree

logger = logging.getLogger("wren.dispatch")


class DispatchState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    ERRORED = "errored"
    FINALIZED = "finalized"
    ABORTED = "aborted"


_TERMINAL = frozenset({DispatchState.FINALIZED, DispatchState.ABORTED})


def _ensure_callable(fn: Any, what: str) -> None:
    if not callable(fn):
        msg = f"{what} must be callable, got {type(fn).__name__}."
        raise ConfigurationError(msg)


class Dispatcher:
    """Global hooks plus the compiled route trie.

    Usage::

        dispatcher = Dispatcher()
        dispatcher.pre(log_request)
        dispatcher.catch(render_error)
        dispatcher.compile(router.routes())

        state = await dispatcher.dispatch(ctx)
    """

    __slots__ = (
        "_catchers",
        "_compile_lock",
        "_compiled",
        "_finalizer",
        "_pending",
        "_post",
        "_pre",
        "_tree",
    )

    def __init__(self, finalizer: Finalizer | None = None) -> None:
        self._pre: list[Middleware] = []
        self._post: list[Middleware] = []
        self._catchers: list[Middleware] = []
        self._finalizer: Finalizer = default_finalizer
        self._pending: list[Route] = []
        self._tree = RouteTree()
        self._compiled = False
        self._compile_lock = threading.Lock()
        if finalizer is not None:
            self.finally_(finalizer)

    # -- Registration --

    def pre(self, *fns: Middleware) -> None:
        """Middleware run before every route's own chain."""
        self._extend(self._pre, fns, "Pre middleware")

    def post(self, *fns: Middleware) -> None:
        """Middleware run after every route's own chain, in declared order."""
        self._extend(self._post, fns, "Post middleware")

    def catch(self, *fns: Middleware) -> None:
        """Error middleware; the chain restarts here on the first failure."""
        self._extend(self._catchers, fns, "Error handler")

    def finally_(self, fn: Finalizer) -> None:
        """Replace the finalizer (``finally`` is a Python keyword)."""
        self._check_not_compiled()
        _ensure_callable(fn, "Finalizer")
        self._finalizer = fn

    def add(self, route: Route) -> None:
        """Queue a route for compilation."""
        self._check_not_compiled()
        self._pending.append(route)

    def _extend(self, target: list[Middleware], fns: Iterable[Middleware], what: str) -> None:
        self._check_not_compiled()
        fns = tuple(fns)
        for fn in fns:
            _ensure_callable(fn, what)
        target.extend(fns)

    def _check_not_compiled(self) -> None:
        if self._compiled:
            msg = "Cannot register hooks or routes after the dispatcher has been compiled."
            raise ConfigurationError(msg)

    # -- Compilation --

    @property
    def compiled(self) -> bool:
        return self._compiled

    @property
    def catchers(self) -> tuple[Middleware, ...]:
        return tuple(self._catchers) or (default_catcher,)

    @property
    def finalizer(self) -> Finalizer:
        return self._finalizer

    def compile(self, routes: Iterable[Route] = ()) -> None:
        """Compose ``[*pre, *route_chain, *post]`` for every route method.

        Thread-safe; compiles exactly once.
        """
        if self._compiled:
            return
        with self._compile_lock:
            if self._compiled:
                return
            pre, post = tuple(self._pre), tuple(self._post)
            for route in (*self._pending, *routes):
                route.freeze()
                for method, chain in route.handlers():
                    self._tree.add(method, route.path, (*pre, *chain, *post), route)
                    logger.debug("compiled %s %s (%d steps)", method, route.path, len(chain))
            self._tree.compile()
            self._pending.clear()
            self._compiled = True

    def lookup(self, method: str, url: str) -> RouteMatch | None:
        """Match a request method and URL against the compiled trie."""
        return self._tree.match(method, url)

    # -- Dispatch --

    async def dispatch(self, ctx: Context) -> DispatchState:
        """Run *ctx* through its chain until it is finalized.

        Returns the final state. Raises when a failure escapes the
        catcher chain or the finalizer.
        """
        self.compile()
        request = ctx.request
        method = request.method.upper()
        match = self.lookup(method, request.url)
        run = _Run(self, ctx)

        if match is None:
            path = normalize_path(request.url)
            logger.debug("no route for %s %s", method, path)
            await run.run(error=NotFound(f"Route not found for {method} {path}"))
        else:
            ctx.params = dict(match.params)
            await run.run(chain=match.chain)
        return run.state

    def __repr__(self) -> str:
        return (
            f"<Dispatcher routes={len(self._tree)} pre={len(self._pre)} "
            f"post={len(self._post)} catch={len(self._catchers)}>"
        )


class _Run:
    """The per-request cursor over the active chain."""

    __slots__ = ("_chain", "_cursor", "_dispatcher", "_fatal", "_generation", "_send", "ctx", "state")

    def __init__(self, dispatcher: Dispatcher, ctx: Context) -> None:
        self._dispatcher = dispatcher
        self.ctx = ctx
        self.state = DispatchState.PENDING
        self._chain: tuple[Middleware, ...] = ()
        self._cursor = 0
        self._generation = 0
        self._fatal: BaseException | None = None
        self._send: Any = None

    async def run(
        self,
        chain: tuple[Middleware, ...] = (),
        error: BaseException | None = None,
    ) -> None:
        send, receive = anyio.create_memory_object_stream(math.inf)
        self._send = send
        try:
            if error is not None:
                self._fail(error)
            else:
                self.state = DispatchState.RUNNING
                self._chain = chain
                self._schedule(0)

            async with receive:
                async for step in receive:
                    await anyio.lowlevel.checkpoint()
                    await step()
                    if self.state is DispatchState.ABORTED:
                        break
        finally:
            send.close()

        if self._fatal is not None:
            raise self._fatal

    def _schedule(self, index: int) -> None:
        if index < len(self._chain):
            next = self._continuation(self._generation, index)
            self._send.send_nowait(functools.partial(self._call, self._chain[index], next))
        else:
            self.state = DispatchState.FINALIZED
            self._send.send_nowait(self._finalize)

    def _continuation(self, generation: int, index: int) -> Next:
        def next(err: Any = None) -> None:
            if self.state in _TERMINAL or generation != self._generation or index != self._cursor:
                if err is not None:
                    logger.warning(
                        "ignoring error reported after next() was already called "
                        "(step %d of %r)",
                        index,
                        self.ctx,
                        exc_info=coerce_error(err),
                    )
                else:
                    logger.debug("ignoring repeated next() (step %d of %r)", index, self.ctx)
                return

            self._cursor = index + 1
            if err is not None:
                self._fail(err)
            else:
                self._schedule(self._cursor)

        return next

    def _fail(self, err: Any) -> None:
        error = coerce_error(err)
        if self.ctx.error is not None:
            # Already in the catcher chain: there is no second one.
            logger.debug("error inside the catcher chain of %r: %s", self.ctx, error)
            self._fatal = error
            self.state = DispatchState.ABORTED
            self._send.close()
            return

        self.ctx.error = error
        self.state = DispatchState.ERRORED
        self._chain = self._dispatcher.catchers
        self._generation += 1
        self._cursor = 0
        self._schedule(0)

    async def _call(self, handler: Middleware, next: Next) -> None:
        try:
            await invoke(handler, self.ctx, next)
        except Exception as exc:
            next(exc)

    async def _finalize(self) -> None:
        try:
            await invoke(self._dispatcher.finalizer, self.ctx)
        finally:
            self._send.close()
