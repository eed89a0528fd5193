"""Uvicorn-backed server.

``Server`` runs the app on the current event loop and exposes
``start()``/``stop()``; ``run_server`` is the blocking variant used by
``App.run()``.
"""

import asyncio
import logging

import uvicorn

from wren.config import AppConfig

logger = logging.getLogger("wren.server")

_STARTUP_POLL_INTERVAL = 0.01


class Server:
    """A uvicorn server bound to one ASGI app.

    Usage::

        server = Server(app, AppConfig(port=0))
        await server.start()
        ...
        await server.stop()
    """

    __slots__ = ("_app", "_config", "_server", "_task")

    def __init__(self, app: object, config: AppConfig | None = None) -> None:
        self._app = app
        self._config = config or AppConfig()
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def started(self) -> bool:
        return self._server is not None and self._server.started

    @property
    def port(self) -> int:
        """The bound port (resolves ``port=0`` after start)."""
        if self._server is None or not self._server.servers:
            return self._config.port
        sockets = self._server.servers[0].sockets
        return sockets[0].getsockname()[1] if sockets else self._config.port

    async def start(self) -> None:
        """Start serving and return once the socket is listening."""
        if self._task is not None:
            msg = "Server is already running."
            raise RuntimeError(msg)

        config = uvicorn.Config(
            self._app,
            host=self._config.host,
            port=self._config.port,
            root_path=self._config.root_path,
            log_level=self._config.log_level,
            lifespan="on",
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())

        while not self._server.started:
            if self._task.done():
                task, self._task = self._task, None
                await task
                msg = "Server exited during startup."
                raise RuntimeError(msg)
            await asyncio.sleep(_STARTUP_POLL_INTERVAL)

        logger.info("listening on http://%s:%d", self._config.host, self.port)

    async def stop(self) -> None:
        """Ask the server to exit and wait for it. No-op when not running."""
        if self._task is None or self._server is None:
            return
        self._server.should_exit = True
        task, self._task = self._task, None
        await task
        logger.info("server stopped")


def run_server(app: object, config: AppConfig) -> None:
    """Serve *app* until interrupted (blocking)."""
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        root_path=config.root_path,
        log_level=config.log_level,
    )
