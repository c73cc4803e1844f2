"""Perch exception hierarchy.

Shared across the router, the request pipeline, the data store and the
loopback client so every module raises and catches the same types.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when service configuration is invalid.

    Typically caught during ``App._freeze()`` at startup.
    """


class DataUpdateError(PerchError):
    """Raised when an ``update`` passed to the data store fails.

    The original exception is chained as ``__cause__``. The stored value
    is left as it was before the call.
    """

    def __init__(self, key: object, cause: BaseException) -> None:
        self.key = key
        super().__init__(f"update for key {key!r} failed: {cause}")


class LoopbackError(PerchError):
    """Raised when a loopback call fails at the transport level."""

    def __init__(self, method: str, url: str, cause: BaseException) -> None:
        self.method = method
        self.url = url
        super().__init__(f"{method} {url} failed: {cause}")


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The request pipeline
    catches these and answers with a plain-text response.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class BadRequest(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """400 — the request body could not be decoded."""

    def __init__(self, detail: str = "Bad Request") -> None:
        super().__init__(status=400, detail=detail)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class PayloadTooLarge(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """413 — the request body exceeds ``max_content_length``."""

    def __init__(self, limit: int) -> None:
        super().__init__(status=413, detail=f"Request body exceeds {limit} bytes")
