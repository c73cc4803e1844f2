"""Tests for the hello example — loopback, database, data store."""

from perch.testing import TestClient


class TestHelloWorld:
    async def test_hello(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/hello")
            assert response.status == 200
            assert response.text == "Hello"

    async def test_world_composes_hello(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/world")
            assert response.text == "Hello world!"


class TestDb:
    async def test_empty_after_migration(self, example_app, capsys) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/db")
            assert response.status == 200
            assert response.json() == []
        assert "(index)" in capsys.readouterr().out

    async def test_insert_then_list(self, example_app, capsys) -> None:
        async with TestClient(example_app) as client:
            created = await client.post("/db", json={"world": "earth"})
            assert created.json() == {"last_row_id": 1, "changes": 1}

            response = await client.get("/db")
            assert response.json() == [{"id": 1, "world": "earth"}]
        assert "'earth'" in capsys.readouterr().out

    async def test_insert_default_world(self, example_app) -> None:
        async with TestClient(example_app) as client:
            await client.post("/db")
            response = await client.get("/db")
            assert response.json() == [{"id": 1, "world": "world"}]


class TestCounter:
    async def test_counts_requests(self, example_app) -> None:
        async with TestClient(example_app) as client:
            assert (await client.get("/count")).json() == {"hits": 1}
            assert (await client.get("/count")).json() == {"hits": 2}
