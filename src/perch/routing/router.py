"""Method-aware trie of the compiled route map."""

import re
from dataclasses import dataclass, field

from perch.errors import MethodNotAllowed, NotFound
from perch.routing.route import CONVERTERS, Route, RouteMatch, parse_path

# Single-piece converters, in the order sibling edges are tried
_PIECE_PATTERNS: dict[str, re.Pattern[str]] = {
    name: re.compile(pattern) for name, pattern in CONVERTERS.items() if name != "path"
}


@dataclass(frozen=True, slots=True)
class _Leaf:
    route: Route
    # One name per captured value, in path order
    names: tuple[str, ...]


@dataclass(slots=True)
class _Node:
    """A trie level. Mutable until the router is compiled."""

    literal: dict[str, "_Node"] = field(default_factory=dict)
    # One edge per converter; parameter names live on the leaves
    typed: dict[str, "_Node"] = field(default_factory=dict)
    rest: "_Node | None" = None
    leaves: dict[str, _Leaf] = field(default_factory=dict)


class Router:
    """Matches (method, path) against the registered routes.

    Two routes may name the parameter at the same position differently
    (``/items/:id`` and ``/items/:item_id/tags``); each match reports the
    names of the route that matched. Literal pieces beat parameters, and
    parameters beat a trailing ``{name:path}``.

    Usage::

        router = Router()
        router.add(Route("/users/{id:int}", "GET", handler))
        router.compile()
        match = router.match("GET", "/users/42")
    """

    __slots__ = ("_compiled", "_root")

    def __init__(self) -> None:
        self._root = _Node()
        self._compiled = False

    def add(self, route: Route) -> Route | None:
        """Register *route*; only allowed before ``compile()``.

        Returns the route it displaced when the same path shape and
        method were already registered. The later registration wins.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        node = self._root
        names: list[str] = []
        for seg in parse_path(route.path):
            if seg.name is None:
                node = node.literal.setdefault(seg.text, _Node())
                continue
            names.append(seg.name)
            if seg.converter == "path":
                if node.rest is None:
                    node.rest = _Node()
                node = node.rest
                break
            node = node.typed.setdefault(seg.converter, _Node())

        previous = node.leaves.get(route.method)
        node.leaves[route.method] = _Leaf(route, tuple(names))
        return previous.route if previous is not None else None

    @property
    def routes(self) -> list[Route]:
        """All registered routes, in trie order."""
        result: list[Route] = []
        stack = [self._root]
        while stack:
            node = stack.pop()
            result.extend(leaf.route for leaf in node.leaves.values())
            stack.extend(node.literal.values())
            stack.extend(node.typed.values())
            if node.rest is not None:
                stack.append(node.rest)
        return result

    def compile(self) -> None:
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Find the route for *method* on *path*.

        Raises ``NotFound`` when no route has this path and
        ``MethodNotAllowed`` when some do, but not for *method*.
        """
        pieces = [p for p in path.split("/") if p]
        found = self._descend(self._root, pieces, 0, ())
        if found is None:
            raise NotFound(f"No route matches {method} {path!r}")

        node, values = found
        leaf = node.leaves.get(method)
        if leaf is None:
            raise MethodNotAllowed(frozenset(node.leaves))
        return RouteMatch(route=leaf.route, path_params=dict(zip(leaf.names, values, strict=True)))

    def _descend(
        self,
        node: _Node,
        pieces: list[str],
        index: int,
        values: tuple[str, ...],
    ) -> tuple[_Node, tuple[str, ...]] | None:
        if index == len(pieces):
            return (node, values) if node.leaves else None

        piece = pieces[index]

        child = node.literal.get(piece)
        if child is not None:
            found = self._descend(child, pieces, index + 1, values)
            if found is not None:
                return found

        for converter, pattern in _PIECE_PATTERNS.items():
            child = node.typed.get(converter)
            if child is None or not pattern.fullmatch(piece):
                continue
            found = self._descend(child, pieces, index + 1, (*values, piece))
            if found is not None:
                return found

        if node.rest is not None and node.rest.leaves:
            return node.rest, (*values, "/".join(pieces[index:]))

        return None
