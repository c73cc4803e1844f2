"""Perch — declarative route-map HTTP services.

A service is a map of paths to ``{method: handler}``. Every handler gets
the request augmented with a shared data store, a loopback client for
calling the service's own routes, and (optionally) an embedded SQLite
database that was migrated at startup.

Basic usage::

    from perch import ServiceConfig, run

    async def hello(ctx):
        return "Hello"

    async def world(ctx):
        return await ctx.get("/hello") + " world!"

    run(ServiceConfig(routes={"/hello": {"get": hello}, "/world": {"get": world}}))

Handlers may return ``None`` (empty 200), a string (sent verbatim), any
JSON-encodable value (sent as JSON), or a ``Response``. An exception
becomes a 500 whose body names it.
"""

__version__ = "0.1.0"
__all__ = [
    "LOOPBACK",
    "App",
    "BadRequest",
    "ConfigurationError",
    "DataAccessor",
    "DataStore",
    "DataUpdateError",
    "DatabaseSettings",
    "HTTPError",
    "Loopback",
    "LoopbackError",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "PerchError",
    "Request",
    "RequestContext",
    "Response",
    "ServiceConfig",
    "apply",
    "get_context",
    "run",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name in ("App", "apply", "run"):
        from perch import app as _app

        return getattr(_app, name)

    if name in ("ServiceConfig", "DatabaseSettings"):
        from perch import config as _config

        return getattr(_config, name)

    if name in ("RequestContext", "get_context"):
        from perch import context as _context

        return getattr(_context, name)

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name in ("DataStore", "DataAccessor"):
        from perch import store as _store

        return getattr(_store, name)

    if name in ("Loopback", "LOOPBACK"):
        from perch import loopback as _loopback

        return getattr(_loopback, name)

    if name in ("Middleware", "Next"):
        from perch.middleware import protocol as _protocol

        return getattr(_protocol, name)

    if name in (
        "PerchError",
        "ConfigurationError",
        "DataUpdateError",
        "LoopbackError",
        "HTTPError",
        "BadRequest",
        "NotFound",
        "MethodNotAllowed",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module 'perch' has no attribute {name!r}"
    raise AttributeError(msg)
