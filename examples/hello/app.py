"""Hello — the smallest useful perch service.

Shows the three things every handler gets:

- ``/world`` calls ``/hello`` through the loopback client
- ``/db`` reads and writes the embedded SQLite database, migrated from
  ``migrations/`` at startup (GET also prints the table to stdout)
- ``/count`` keeps a hit counter in the shared data store

Run:
    cd examples/hello && python app.py
"""

from pathlib import Path

from perch import App, DatabaseSettings, RequestContext, ServiceConfig, apply

MIGRATIONS = Path(__file__).parent / "migrations"


async def hello(ctx: RequestContext) -> str:
    return "Hello"


async def world(ctx: RequestContext) -> str:
    # output of GET /hello, plus our own suffix
    return await ctx.get("/hello") + " world!"


async def list_rows(ctx: RequestContext) -> list[dict]:
    await ctx.db.dump_table("Hello")
    return await ctx.db.fetch_all("SELECT * FROM Hello")


async def add_row(ctx: RequestContext):
    body = ctx.body if isinstance(ctx.body, dict) else {}
    return await ctx.db.run("INSERT INTO Hello (world) VALUES (?)", body.get("world") or "world")


async def count(ctx: RequestContext) -> dict:
    await ctx.data("hits", 0)
    hits = await ctx.data("hits", 0, lambda n: n + 1)
    return {"hits": hits}


def create_app(db_url: str = "./db.sqlite") -> App:
    return apply(
        ServiceConfig(
            routes={
                "/hello": {"get": hello},
                "/world": {"get": world},
                "/db": {"get": list_rows, "post": add_row},
                "/count": {"get": count},
            },
            port=8000,
            db=DatabaseSettings(db_url, migrations=MIGRATIONS),
        )
    )


app = create_app()


if __name__ == "__main__":
    app.run()
