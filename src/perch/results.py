"""Handler results — tagged variants for what a route handler produced.

A handler may return nothing, a string, any JSON-encodable value, or
raise. ``classify`` turns that into one of four variants and
``to_response`` pattern-matches the variant into a ``Response``:

    None              -> Empty         -> 200, empty body
    str               -> Text          -> 200, body sent verbatim (text/plain)
    anything else     -> Structured    -> 200, JSON body
    raised exception  -> Failure       -> 500, "Error! <Type>: <message>"

A ``Response`` returned by a handler passes through untouched.
"""

import json as json_module
import logging
from dataclasses import dataclass
from typing import Any

from perch.http.response import JSON, TEXT, Response

logger = logging.getLogger("perch.server")


@dataclass(frozen=True, slots=True)
class Empty:
    pass


@dataclass(frozen=True, slots=True)
class Text:
    body: str


@dataclass(frozen=True, slots=True)
class Structured:
    value: Any


@dataclass(frozen=True, slots=True)
class Failure:
    description: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Failure":
        message = str(exc)
        name = type(exc).__name__
        return cls(f"{name}: {message}" if message else name)


type HandlerResult = Empty | Text | Structured | Failure


def classify(value: Any) -> HandlerResult:
    """Tag a handler's return value."""
    match value:
        case None:
            return Empty()
        case str():
            return Text(value)
        case _:
            return Structured(value)


def to_response(result: HandlerResult) -> Response:
    """Render a tagged result as a response.

    A ``Structured`` value that cannot be JSON-encoded is logged on
    ``perch.server`` and becomes a ``Failure`` response rather than an
    exception.
    """
    match result:
        case Empty():
            return Response(body=b"", content_type=TEXT)
        case Text(body=body):
            return Response(body=body, content_type=TEXT)
        case Structured(value=value):
            try:
                encoded = json_module.dumps(value, default=_encode_extra)
            except (TypeError, ValueError) as exc:
                logger.error("Handler result could not be encoded as JSON", exc_info=exc)
                return to_response(Failure.from_exception(exc))
            return Response(body=encoded, content_type=JSON)
        case Failure(description=description):
            return Response(body=f"Error! {description}", status=500, content_type=TEXT)
    msg = f"Unknown handler result: {result!r}"
    raise TypeError(msg)


def _encode_extra(value: Any) -> Any:
    """JSON fallbacks for common non-JSON types (dataclasses, sets, bytes)."""
    import dataclasses

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return list(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)
