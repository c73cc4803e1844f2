"""Access log middleware — one line per request in combined log format.

Runs ahead of everything else in the pipeline, so it sees the final
status of every request, including 404s and handler failures.
"""

import logging
import time
from datetime import UTC, datetime

from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next

logger = logging.getLogger("perch.access")


def format_combined(
    request: Request,
    response: Response,
    *,
    now: datetime | None = None,
) -> str:
    """Format a request/response pair as an Apache combined log line."""
    client = request.client[0] if request.client else "-"
    stamp = (now or datetime.now(UTC)).strftime("%d/%b/%Y:%H:%M:%S %z")
    size = len(response.body_bytes) or "-"
    referer = request.headers.get("referer", "-")
    agent = request.headers.get("user-agent", "-")
    return (
        f'{client} - - [{stamp}] "{request.method} {request.url} HTTP/{request.http_version}" '
        f'{response.status} {size} "{referer}" "{agent}"'
    )


class AccessLog:
    """Log every request on the ``perch.access`` logger at INFO."""

    __slots__ = ("logger",)

    def __init__(self, logger: logging.Logger = logger) -> None:
        self.logger = logger

    async def __call__(self, request: Request, next: Next) -> Response:
        start = time.perf_counter()
        response = await next(request)
        if self.logger.isEnabledFor(logging.INFO):
            self.logger.info(
                "%s %.1fms",
                format_combined(request, response),
                (time.perf_counter() - start) * 1000,
            )
        return response
