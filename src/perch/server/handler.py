"""ASGI handler — the per-request pipeline.

The only component that touches raw ASGI for HTTP requests. For each
request it:

1. builds a ``Request`` from the ASGI scope,
2. runs it through the middleware chain (access log first),
3. matches the route, augments the request into a ``RequestContext``,
   calls the handler and renders its tagged result,
4. sends the resulting ``Response``.

A handler failure is logged and answered with a 500 whose body names the
error. It never propagates out of the pipeline, so the service keeps
serving.
"""

import logging
from collections.abc import Callable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.context import augment, context_var
from perch.data.database import Database
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.loopback import Loopback
from perch.middleware.protocol import Next
from perch.results import Failure, classify, to_response
from perch.routing.route import RouteMatch
from perch.routing.router import Router
from perch.server.errors import http_error_response, internal_error_response
from perch.server.sender import send_response
from perch.store import DataAccessor

logger = logging.getLogger("perch.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    middleware: tuple[Callable[..., Any], ...],
    data: DataAccessor,
    loopback: Loopback,
    db: Database | None = None,
    max_content_length: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    async def dispatch(req: Request) -> Response:
        try:
            match = router.match(req.method, req.path)
            return await call_route(
                match,
                req,
                data=data,
                loopback=loopback,
                db=db,
                max_content_length=max_content_length,
            )
        except HTTPError as exc:
            return http_error_response(exc, req)

    handler: Next = dispatch
    for mw in reversed(middleware):

        async def make_next(req: Request, _mw: Any = mw, _next: Next = handler) -> Response:
            return await _mw(req, _next)

        handler = make_next

    try:
        response = await handler(request)
    except HTTPError as exc:
        response = http_error_response(exc, request)
    except Exception as exc:
        response = internal_error_response(exc, request)

    await send_response(response, send)


async def call_route(
    match: RouteMatch,
    request: Request,
    *,
    data: DataAccessor,
    loopback: Loopback,
    db: Database | None = None,
    max_content_length: int | None = None,
) -> Response:
    """Augment *request*, invoke the matched handler, and render the result.

    Augmentation errors (bad JSON, oversized body) surface as
    ``HTTPError`` and the handler is never called. Everything the
    handler raises becomes a ``Failure``,
    except an ``HTTPError``, which keeps its status.
    """
    route = match.route
    ctx = await augment(
        request.with_path_params(match.path_params),
        store=data,
        loopback=loopback,
        db=db,
        max_content_length=max_content_length,
    )

    token = context_var.set(ctx)
    try:
        result = await invoke(route.handler, ctx)
    except HTTPError:
        raise
    except Exception as exc:
        logger.error("%s %s handler failed", route.method, route.path, exc_info=exc)
        return to_response(Failure.from_exception(exc))
    finally:
        context_var.reset(token)

    if isinstance(result, Response):
        return result
    return to_response(classify(result))
