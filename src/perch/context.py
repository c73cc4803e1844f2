"""Request context — the augmented request a route handler receives.

Every inbound request is wrapped in a ``RequestContext`` before its
handler runs. The context holds, as named fields:

- ``request``  the immutable HTTP request
- ``data``     accessor for the service-wide keyed data store
- ``loopback`` client for calling the service's own routes, already
  bound to the caller's ``User-Agent``
- ``db``       the shared database handle, when one is configured
- ``body``     the decoded JSON body, or ``None``

Handlers use it like this::

    async def world(ctx: RequestContext) -> str:
        return await ctx.get("/hello") + " world!"

    async def create(ctx: RequestContext):
        return await ctx.db.run("INSERT INTO hello(world) VALUES (?)", ctx.body["world"])

The context is built in full by ``augment()`` before the handler is
invoked and is discarded when the request completes.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from perch.http.headers import Headers
from perch.http.query import QueryParams
from perch.http.request import Request
from perch.loopback import Loopback
from perch.store import DataAccessor, DataStore

if TYPE_CHECKING:
    import httpx

    from perch.data.database import Database

context_var: ContextVar[RequestContext] = ContextVar("perch_context")
"""The current request context. Set by the pipeline around each handler call."""


def get_context() -> RequestContext:
    """Return the context of the request being handled.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()


@dataclass(frozen=True, slots=True)
class RequestContext:
    """An inbound request plus the capabilities perch attaches to it."""

    request: Request
    data: DataAccessor
    loopback: Loopback
    body: Any = None
    _db: Database | None = None

    # -- Request shortcuts --

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def headers(self) -> Headers:
        return self.request.headers

    @property
    def query(self) -> QueryParams:
        return self.request.query

    @property
    def path_params(self) -> dict[str, str]:
        return self.request.path_params

    # -- Database --

    @property
    def has_db(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> Database:
        """The shared database handle.

        Raises ``RuntimeError`` if the service has no database configured.
        """
        if self._db is None:
            msg = "No database configured. Pass db=DatabaseSettings(...) to ServiceConfig."
            raise RuntimeError(msg)
        return self._db

    # -- Loopback --

    async def fetch(self, path: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        return await self.loopback.fetch(path, method, **kwargs)

    async def get(self, path: str) -> Any:
        return await self.loopback.get(path)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.loopback.post(path, body)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.loopback.put(path, body)

    async def patch(self, path: str, body: Any = None) -> Any:
        return await self.loopback.patch(path, body)

    async def delete(self, path: str) -> Any:
        return await self.loopback.delete(path)


async def augment(
    request: Request,
    *,
    store: DataStore | DataAccessor,
    loopback: Loopback,
    db: Database | None = None,
    max_content_length: int | None = None,
) -> RequestContext:
    """Attach the data accessor, loopback client and database to *request*.

    JSON bodies are decoded here, before the handler runs. A malformed
    body raises ``BadRequest`` and an oversized one ``PayloadTooLarge``;
    in both cases no context is produced.
    """
    body = await request.json(max_content_length) if request.is_json else None
    accessor = store if isinstance(store, DataAccessor) else DataAccessor(store)
    return RequestContext(
        request=request,
        data=accessor,
        loopback=loopback.with_caller(request.user_agent),
        body=body,
        _db=db,
    )
