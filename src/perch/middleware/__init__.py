"""Middleware — protocol-based, no inheritance required.

A middleware is any callable matching::

    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    AccessLog -- combined-format request log on the ``perch.access`` logger
"""

from perch.middleware.access_log import AccessLog
from perch.middleware.protocol import Middleware, Next

__all__ = ["AccessLog", "Middleware", "Next"]
