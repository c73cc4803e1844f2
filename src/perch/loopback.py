"""Loopback client — HTTP calls from a service back to itself.

Handlers compose routes without knowing the host or port they run on::

    async def world(ctx):
        return await ctx.get("/hello") + " world!"

Responses are decoded by content type: JSON when the server says
``application/json``, text otherwise. Non-2xx statuses are *not*
raised; the decoded body is returned whatever the status. Only
transport failures (connection refused, timeouts) raise, as
``LoopbackError``.

Inside a request, calls carry the inbound ``User-Agent`` forward so the
downstream route sees the same caller. Nothing else (cookies,
authorization) is forwarded.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import httpx

from perch.errors import LoopbackError

FALLBACK_USER_AGENT = "Loopback"

_UNSET: Any = object()


def decode_body(response: httpx.Response) -> Any:
    """Decode a loopback response body by its content type."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        return response.json()
    return response.text


@dataclass(frozen=True, slots=True)
class Loopback:
    """HTTP client aimed at the service's own listening address.

    Args:
        base_url: Prefix for every path, e.g. ``"http://localhost:8000"``.
            ``None`` sends the path/URL exactly as given.
        user_agent: Identity sent as ``User-Agent``. ``None`` sends no
            identity header of our own.
        transport: Optional ``httpx`` transport. Tests pass an
            ``httpx.ASGITransport`` so calls stay in-process.
        timeout: Per-call timeout in seconds (``None`` waits forever).
    """

    base_url: str | None = None
    user_agent: str | None = None
    transport: httpx.AsyncBaseTransport | None = None
    timeout: float | None = None

    def with_caller(self, user_agent: str | None) -> Loopback:
        """Return a copy that forwards *user_agent* (or the fallback)."""
        return replace(self, user_agent=user_agent or FALLBACK_USER_AGENT)

    def url_for(self, path: str) -> str:
        if self.base_url is None:
            return path
        return self.base_url.rstrip("/") + path

    async def fetch(
        self,
        path: str,
        method: str = "GET",
        *,
        json: Any = _UNSET,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request and return the raw ``httpx.Response``."""
        url = self.url_for(path)
        request_headers = dict(headers or {})
        if self.user_agent is not None:
            request_headers["user-agent"] = self.user_agent
        kwargs: dict[str, Any] = {"headers": request_headers}
        if json is not _UNSET:
            kwargs["json"] = json

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise LoopbackError(method, url, exc) from exc

    async def get(self, path: str) -> Any:
        return decode_body(await self.fetch(path))

    async def post(self, path: str, body: Any = None) -> Any:
        return decode_body(await self.fetch(path, "POST", json=body))

    async def put(self, path: str, body: Any = None) -> Any:
        return decode_body(await self.fetch(path, "PUT", json=body))

    async def patch(self, path: str, body: Any = None) -> Any:
        return decode_body(await self.fetch(path, "PATCH", json=body))

    async def delete(self, path: str) -> Any:
        return decode_body(await self.fetch(path, "DELETE"))


LOOPBACK = Loopback()
"""Client for use outside any request: paths are sent as given, no identity."""
