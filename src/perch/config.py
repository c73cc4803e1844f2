"""Service configuration.

``ServiceConfig`` is a frozen dataclass: immutable after creation,
IDE-autocompletable, no string-key dict lookups. The route map is the
only required field::

    config = ServiceConfig(
        routes={"/hello": {"get": lambda ctx: "Hello"}},
        port=8000,
        db=DatabaseSettings("./db.sqlite", migrations="migrations"),
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from perch._internal.types import RouteMap
from perch.errors import ConfigurationError
from perch.routing.table import validate_routes

if TYPE_CHECKING:
    from perch.middleware.protocol import Middleware

_LOCAL_HOSTS = frozenset({"127.0.0.1", "0.0.0.0", "::", "::1", "localhost"})


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """Where the embedded database lives and how to prepare it.

    ``url`` is ``sqlite:///path``, a bare path, or ``:memory:``.
    ``migrations`` is a directory of numbered ``.sql`` files run at startup.
    """

    url: str
    migrations: str | Path | None = None
    echo: bool = False


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Everything ``App`` needs to turn a route map into a running service."""

    routes: RouteMap

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Embedded database (optional)
    db: DatabaseSettings | None = None

    # Extra middleware, run in order after the access log
    middleware: tuple[Middleware, ...] = ()

    # Initial contents of the keyed data store
    data: Mapping[Any, Any] | None = field(default=None, repr=False)

    # Logging
    access_log: bool = True
    log_level: str = "info"

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    def __post_init__(self) -> None:
        validate_routes(self.routes)
        if not 0 <= self.port <= 65535:
            msg = f"port must be between 0 and 65535, got {self.port}"
            raise ConfigurationError(msg)
        if isinstance(self.db, str):
            # Allow db="./app.db" as shorthand
            object.__setattr__(self, "db", DatabaseSettings(self.db))
        if not isinstance(self.middleware, tuple):
            object.__setattr__(self, "middleware", tuple(self.middleware))

    @property
    def base_url(self) -> str:
        """Address the service listens on, as seen from the same host."""
        return local_url(self.host, self.port)


def local_url(host: str, port: int) -> str:
    """Base URL for reaching a server bound to *host*:*port* from this host.

    Wildcard and loopback binds map to ``localhost``; other IPv6 literals
    are bracketed.
    """
    if host in _LOCAL_HOSTS:
        host = "localhost"
    elif ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"http://{host}:{port}"
