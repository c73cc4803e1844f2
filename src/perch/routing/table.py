"""Route map validation and compilation.

Turns the declarative ``{path: {method: handler}}`` map into a compiled
``Router``. This is the "Unregistered -> Registered" step for every
(path, method) pair; nothing can be added once it has run.
"""

import logging
from collections.abc import Mapping

from perch._internal.types import RouteMap
from perch.errors import ConfigurationError
from perch.routing.route import Route, parse_path
from perch.routing.router import Router

logger = logging.getLogger("perch.server")

METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


def validate_routes(routes: object) -> None:
    """Check the shape of a route map without compiling it.

    Raises:
        ConfigurationError: When *routes* or one of its route configs is
            not a mapping, a path does not start with ``/`` or uses an
            unknown converter, a method key is not a supported method
            name, or a handler is not callable.
    """
    if not isinstance(routes, Mapping):
        msg = f"routes must be a mapping of path -> {{method: handler}}, got {type(routes).__name__}"
        raise ConfigurationError(msg)
    for path, route_config in routes.items():
        if not isinstance(path, str) or not path.startswith("/"):
            msg = f"Route path must start with '/': {path!r}"
            raise ConfigurationError(msg)
        parse_path(path)
        if not isinstance(route_config, Mapping):
            msg = (
                f"Route {path!r} must map method names to handlers, "
                f"got {type(route_config).__name__}"
            )
            raise ConfigurationError(msg)
        for key, handler in route_config.items():
            if not isinstance(key, str) or key.upper() not in METHODS:
                allowed = ", ".join(sorted(m.lower() for m in METHODS))
                msg = f"Unsupported method {key!r} for route {path!r} (expected one of {allowed})"
                raise ConfigurationError(msg)
            if not callable(handler):
                msg = f"Handler for {key.upper()} {path!r} is not callable: {handler!r}"
                raise ConfigurationError(msg)


def compile_routes(routes: RouteMap) -> Router:
    """Register every (path, method) of *routes* on a new, compiled router.

    Method keys are case-insensitive. Registration follows the map's
    iteration order, so when two paths land on the same route node
    (``/a`` and ``/a/``) with the same method, the later one wins.

    Raises:
        ConfigurationError: If ``validate_routes`` rejects the map.
    """
    validate_routes(routes)
    router = Router()
    for path, route_config in routes.items():
        for key, handler in route_config.items():
            method = key.upper()
            replaced = router.add(Route(path=path, method=method, handler=handler))
            if replaced is not None:
                logger.warning(
                    "%s %s overrides earlier registration %s %s",
                    method,
                    path,
                    replaced.method,
                    replaced.path,
                )
    router.compile()
    return router
