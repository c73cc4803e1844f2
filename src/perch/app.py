"""Perch application — a route map turned into an ASGI service.

``App`` reads a ``ServiceConfig`` and, at startup:

1. opens the database and runs migrations (when configured),
2. compiles every (path, method) of the route map into the router,
3. reports the service as started.

After that the app is frozen: no routes are added or removed. Each
request is augmented with the data store, the loopback client and the
database before its handler runs (see ``perch.server.handler``).
"""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from perch._internal.asgi import Receive, Scope, Send
from perch.config import ServiceConfig, local_url
from perch.loopback import Loopback
from perch.middleware.access_log import AccessLog
from perch.routing.table import compile_routes
from perch.server.handler import handle_request
from perch.store import DataAccessor, DataStore

if TYPE_CHECKING:
    import httpx

    from perch.data.database import Database
    from perch.routing.router import Router

logger = logging.getLogger("perch.server")


class App:
    """A running (or about to run) perch service.

    Usage::

        app = App(ServiceConfig(routes={"/hello": {"get": lambda ctx: "Hello"}}))
        app.run()

    Thread safety:
        Freezing uses a Lock + double-check so exactly one caller
        compiles the route map even if several ASGI calls race on the
        first request.
    """

    __slots__ = (
        "_data",
        "_db",
        "_freeze_lock",
        "_frozen",
        "_loopback",
        "_loopback_pinned",
        "_middleware",
        "_router",
        "_shutdown_hooks",
        "_started",
        "_startup_hooks",
        "config",
        "store",
    )

    def __init__(self, config: ServiceConfig, *, store: DataStore | None = None) -> None:
        self.config = config
        self.store: DataStore = store if store is not None else DataStore(config.data)
        self._data = DataAccessor(self.store)
        self._loopback = Loopback(base_url=config.base_url)
        self._loopback_pinned = False
        self._db: Database | None = None
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._started = False
        self._frozen = False
        self._freeze_lock = threading.Lock()

        # Compiled state, set by _freeze()
        self._router: Router | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()

    # -- Public accessors --

    @property
    def db(self) -> Database:
        """The database handle, once started.

        Raises ``RuntimeError`` if no database is configured or the
        service has not started yet.
        """
        if self._db is None:
            msg = (
                "No database available. Configure ServiceConfig(db=...) "
                "and start the app (lifespan or TestClient) first."
            )
            raise RuntimeError(msg)
        return self._db

    @property
    def loopback(self) -> Loopback:
        """Loopback client for calls made outside any request."""
        return self._loopback.with_caller(None)

    @property
    def started(self) -> bool:
        return self._started

    def use_loopback(self, base_url: str, transport: httpx.AsyncBaseTransport | None) -> None:
        """Point loopback calls at *base_url* through *transport*.

        ``TestClient`` uses this to route loopback calls in-process.
        Once pinned, the listening address no longer changes the target.
        """
        self._loopback = Loopback(base_url=base_url, transport=transport)
        self._loopback_pinned = True

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async hook run after the database is ready.

        Hooks run in registration order, before the service accepts requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async hook run at shutdown, before the database closes."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        """Open the database, compile routes, run startup hooks.

        Raises whatever the database or a migration raises; the caller
        must not start serving in that case.
        """
        if self._started:
            return
        if self.config.db is not None:
            from perch.data.attach import open_database

            self._db, _ = await open_database(self.config.db)

        try:
            self._ensure_frozen()
            for hook in self._startup_hooks:
                result = hook()
                if inspect.isawaitable(result):
                    await result
        except BaseException:
            if self._db is not None:
                await self._db.disconnect()
                self._db = None
            raise
        self._started = True
        logger.info("Server started! %s", self._loopback.base_url)

    async def shutdown(self) -> None:
        """Run shutdown hooks and close the database."""
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result
        if self._db is not None:
            await self._db.disconnect()
        self._started = False

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Serve with uvicorn until interrupted.

        *host* and *port* override the configured address; loopback calls
        follow the override.
        """
        from perch.server.runner import run_server

        host, port = self._bind(host, port)
        run_server(self, host, port, log_level=self.config.log_level)

    async def serve(self, host: str | None = None, port: int | None = None) -> None:
        """Serve with uvicorn inside an already running event loop."""
        from perch.server.runner import build_server, configure_logging

        host, port = self._bind(host, port)
        configure_logging(self.config.log_level)
        server = build_server(self, host, port, log_level=self.config.log_level)
        await server.serve()

    def _bind(self, host: str | None, port: int | None) -> tuple[str, int]:
        host = host or self.config.host
        port = self.config.port if port is None else port
        if not self._loopback_pinned:
            self._loopback = Loopback(base_url=local_url(host, port))
        return host, port

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        assert self._router is not None

        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            middleware=self._middleware,
            data=self._data,
            loopback=self._loopback if self._loopback_pinned else self._serving_loopback(scope),
            db=self._db,
            max_content_length=self.config.max_content_length,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        A startup failure is reported as ``lifespan.startup.failed`` so the
        server never begins listening.
        """
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.error("Startup failed: %s", exc, exc_info=exc)
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _serving_loopback(self, scope: Scope) -> Loopback:
        """Loopback aimed at the socket this request arrived on.

        Covers ``port=0`` and servers started without ``run()``/``serve()``;
        falls back to the configured address for unix sockets.
        """
        server = scope.get("server")
        if server is None or server[1] is None:
            return self._loopback
        url = local_url(server[0], server[1])
        if url != self._loopback.base_url:
            self._loopback = Loopback(base_url=url)
        return self._loopback

    def _freeze(self) -> None:
        """Compile routes and middleware. MUST hold _freeze_lock."""
        self._router = compile_routes(self.config.routes)

        middleware: list[Callable[..., Any]] = []
        if self.config.access_log:
            middleware.append(AccessLog())
        if self.config.db is not None:
            from perch.data.attach import attach_middleware

            # Read per request: startup may run after freezing, or run again
            middleware.append(attach_middleware(lambda: self._db))
        middleware.extend(self.config.middleware)
        self._middleware = tuple(middleware)

        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register hooks before calling app.run()."
            )
            raise RuntimeError(msg)


def apply(config: ServiceConfig) -> App:
    """Build an App from *config* and validate its route map.

    The route map is compiled once here so configuration mistakes
    (unknown methods, non-callable handlers) fail before serving.
    """
    compile_routes(config.routes)
    return App(config)


def run(config: ServiceConfig) -> None:
    """Build an App from *config* and serve it until interrupted."""
    apply(config).run()
