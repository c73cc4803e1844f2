"""Shared type aliases used across perch modules."""

from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

# Route handler: receives a RequestContext, returns None / str / value / Response
Handler: TypeAlias = Callable[..., Any]

# Per-path method table, e.g. {"get": handler, "post": handler}
RouteConfig: TypeAlias = Mapping[str, Handler]

# Declarative route map, e.g. {"/hello": {"get": handler}}
RouteMap: TypeAlias = Mapping[str, RouteConfig]

# Data-store update closure, sync or async. Receives the current value
Updater: TypeAlias = Callable[[Any], Any]
