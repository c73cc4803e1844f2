"""Route path syntax and the records the router hands out.

A route path is ``/``-separated. Each piece is either literal text or a
parameter, written ``:name`` or ``{name}`` (any non-empty piece),
``{name:int}``, ``{name:float}``, or ``{name:path}`` (the rest of the
path, slashes included).
"""

from dataclasses import dataclass

from perch._internal.types import Handler
from perch.errors import ConfigurationError

# Converter -> regex a path piece must fully match. Listed from most to
# least specific; the router tries sibling parameters in this order.
CONVERTERS: dict[str, str] = {
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "str": r"[^/]+",
    "path": r".+",
}


@dataclass(frozen=True, slots=True)
class Segment:
    """One piece of a route path. ``name`` is ``None`` for literal text."""

    text: str
    name: str | None = None
    converter: str = "str"


def parse_path(path: str) -> list[Segment]:
    """Split *path* into segments; empty pieces are dropped.

    ``"/users/:id"`` and ``"/users/{id}"`` parse the same way.

    Raises:
        ConfigurationError: On an unknown converter such as ``{id:uuid}``.
    """
    segments: list[Segment] = []
    for piece in filter(None, path.split("/")):
        if piece.startswith("{") and piece.endswith("}"):
            name, _, converter = piece[1:-1].partition(":")
            converter = converter or "str"
        elif piece.startswith(":") and len(piece) > 1:
            name, converter = piece[1:], "str"
        else:
            segments.append(Segment(piece))
            continue
        if converter not in CONVERTERS:
            msg = f"Unknown path converter {converter!r} in route {path!r}"
            raise ConfigurationError(msg)
        segments.append(Segment(piece, name, converter))
    return segments


@dataclass(frozen=True, slots=True)
class Route:
    """The handler the route map gives for *method* on *path*."""

    path: str
    method: str
    handler: Handler


@dataclass(frozen=True, slots=True)
class RouteMatch:
    route: Route
    # Named by the matched route's own parameter names
    path_params: dict[str, str]
