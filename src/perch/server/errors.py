"""Error responses for the request pipeline.

Two kinds of failure reach this module:

- ``HTTPError`` (404, 405, 400, 413 ...) becomes a plain-text response
  carrying its status, detail and headers.
- Anything else escaping the pipeline outside a route handler (a broken
  middleware, say) is logged and answered with a bare 500.

Other failures *inside* a route handler never get here; the route wrapper
turns them into a ``Failure`` result itself.
"""

import logging

from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response

logger = logging.getLogger("perch.server")


def http_error_response(exc: HTTPError, request: Request) -> Response:
    """Map an HTTPError to a plain-text response."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
    response = Response(body=exc.detail or f"Error {exc.status}", status=exc.status)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def internal_error_response(exc: Exception, request: Request) -> Response:
    """Log an unexpected pipeline failure and answer 500."""
    logger.error("500 %s %s", request.method, request.path, exc_info=exc)
    return Response(body="Internal Server Error", status=500)
