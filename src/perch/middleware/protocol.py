"""The shape perch expects of a middleware.

``ServiceConfig.middleware`` entries run after the access log and the
database attachment, outermost first. Each receives the request and the
rest of the chain; returning without calling ``next`` short-circuits the
route handler.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from perch.http.request import Request
from perch.http.response import Response

type Next = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Any async callable ``(request, next) -> Response``.

    Plain functions and objects with ``__call__`` both qualify::

        async def require_token(request: Request, next: Next) -> Response:
            if request.headers.get("x-token") != "secret":
                return Response("Forbidden", status=403)
            return await next(request)
    """

    async def __call__(self, request: Request, next: Next) -> Response: ...
