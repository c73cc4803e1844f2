"""Routing — compiles a declarative route map into a method-aware trie.

The route map is read once at startup; the compiled router is immutable
afterwards.
"""

from perch.routing.route import Route, RouteMatch
from perch.routing.router import Router
from perch.routing.table import METHODS, compile_routes, validate_routes

__all__ = ["METHODS", "Route", "RouteMatch", "Router", "compile_routes", "validate_routes"]
