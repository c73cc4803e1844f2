"""Immutable HTTP request.

Frozen metadata with async body access. The route-map engine never hands
this object to user code directly; handlers receive a ``RequestContext``
that holds it alongside the data store, loopback client and database.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field, replace
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.errors import BadRequest, PayloadTooLarge
from perch.http.headers import Headers
from perch.http.query import QueryParams


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, ...) is frozen at creation.
    The body is read asynchronously via ``.body()``, ``.json()`` or ``.text()``.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: dict[str, str]
    http_version: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: body cache, shared between copies made by with_path_params()
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def user_agent(self) -> str | None:
        return self.headers.get("user-agent")

    @property
    def url(self) -> str:
        """Request path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @property
    def is_json(self) -> bool:
        return "json" in (self.content_type or "")

    # -- Async body access --

    async def body(self, max_length: int | None = None) -> bytes:
        """Read the full request body.

        The ASGI receive channel is consumed once; later calls return the
        cached bytes. Raises ``PayloadTooLarge`` once more than
        *max_length* bytes have arrived.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks: list[bytes] = []
        size = 0
        async for chunk in self.stream():
            size += len(chunk)
            if max_length is not None and size > max_length:
                raise PayloadTooLarge(max_length)
            chunks.append(chunk)
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self, max_length: int | None = None) -> Any:
        """Decode the body as JSON. An empty body decodes to ``None``."""
        raw = await self.body(max_length)
        if not raw.strip():
            return None
        try:
            return json_module.loads(raw)
        except ValueError as exc:
            raise BadRequest(f"Invalid JSON body: {exc}") from exc

    async def text(self, max_length: int | None = None) -> str:
        raw = await self.body(max_length)
        return raw.decode("utf-8")

    # -- Copies --

    def with_path_params(self, path_params: dict[str, str]) -> Request:
        """Return a copy carrying the matched path parameters."""
        return replace(self, path_params=path_params)

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            query=QueryParams(scope.get("query_string", b"")),
            path_params={},
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            _receive=receive,
        )
