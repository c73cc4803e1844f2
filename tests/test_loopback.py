"""Tests for perch.loopback — HTTP calls from a service to itself."""

import httpx
import pytest

from perch.errors import LoopbackError
from perch.loopback import FALLBACK_USER_AGENT, LOOPBACK, Loopback, decode_body


def _echo_transport(seen: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/json":
            return httpx.Response(200, json={"ok": True})
        if request.url.path == "/missing":
            return httpx.Response(404, text="Not Found")
        if request.method in ("POST", "PUT", "PATCH"):
            return httpx.Response(
                200, content=request.content, headers={"content-type": "application/json"}
            )
        return httpx.Response(200, text="Hello")

    return httpx.MockTransport(handler)


class TestUrlFor:
    def test_base_url_prefix(self) -> None:
        assert Loopback(base_url="http://localhost:8000").url_for("/hello") == (
            "http://localhost:8000/hello"
        )

    def test_trailing_slash_on_base(self) -> None:
        assert Loopback(base_url="http://localhost:8000/").url_for("/hello") == (
            "http://localhost:8000/hello"
        )

    def test_no_base_url_passes_through(self) -> None:
        assert LOOPBACK.url_for("http://example.test/x") == "http://example.test/x"


class TestCaller:
    def test_with_caller_forwards_agent(self) -> None:
        assert Loopback().with_caller("curl/8.0").user_agent == "curl/8.0"

    def test_with_caller_falls_back(self) -> None:
        assert Loopback().with_caller(None).user_agent == FALLBACK_USER_AGENT
        assert Loopback().with_caller("").user_agent == FALLBACK_USER_AGENT

    def test_with_caller_keeps_transport(self) -> None:
        transport = _echo_transport([])
        lb = Loopback(base_url="http://t", transport=transport).with_caller("x")
        assert lb.transport is transport
        assert lb.base_url == "http://t"


class TestCalls:
    async def test_get_text(self) -> None:
        seen: list[httpx.Request] = []
        lb = Loopback(base_url="http://testserver", transport=_echo_transport(seen))
        assert await lb.get("/hello") == "Hello"
        assert seen[0].method == "GET"
        assert str(seen[0].url) == "http://testserver/hello"

    async def test_get_json(self) -> None:
        lb = Loopback(base_url="http://testserver", transport=_echo_transport([]))
        assert await lb.get("/json") == {"ok": True}

    async def test_post_sends_json_body(self) -> None:
        seen: list[httpx.Request] = []
        lb = Loopback(base_url="http://testserver", transport=_echo_transport(seen))
        assert await lb.post("/items", {"name": "a"}) == {"name": "a"}
        assert seen[0].headers["content-type"] == "application/json"

    @pytest.mark.parametrize("method", ["put", "patch"])
    async def test_put_patch(self, method: str) -> None:
        seen: list[httpx.Request] = []
        lb = Loopback(base_url="http://testserver", transport=_echo_transport(seen))
        assert await getattr(lb, method)("/items/1", [1, 2]) == [1, 2]
        assert seen[0].method == method.upper()

    async def test_delete(self) -> None:
        seen: list[httpx.Request] = []
        lb = Loopback(base_url="http://testserver", transport=_echo_transport(seen))
        await lb.delete("/items/1")
        assert seen[0].method == "DELETE"

    async def test_non_2xx_is_not_raised(self) -> None:
        lb = Loopback(base_url="http://testserver", transport=_echo_transport([]))
        assert await lb.get("/missing") == "Not Found"

    async def test_fetch_returns_raw_response(self) -> None:
        lb = Loopback(base_url="http://testserver", transport=_echo_transport([]))
        response = await lb.fetch("/missing")
        assert response.status_code == 404

    async def test_user_agent_forwarded(self) -> None:
        seen: list[httpx.Request] = []
        lb = Loopback(base_url="http://testserver", transport=_echo_transport(seen))
        await lb.with_caller("Mozilla/5.0").get("/hello")
        assert seen[0].headers["user-agent"] == "Mozilla/5.0"

    async def test_fallback_agent_outside_request(self) -> None:
        seen: list[httpx.Request] = []
        lb = Loopback(base_url="http://testserver", transport=_echo_transport(seen))
        await lb.with_caller(None).get("/hello")
        assert seen[0].headers["user-agent"] == "Loopback"

    async def test_transport_failure_raises_loopback_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        lb = Loopback(base_url="http://testserver", transport=httpx.MockTransport(refuse))
        with pytest.raises(LoopbackError, match="GET http://testserver/hello failed") as exc_info:
            await lb.get("/hello")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestDecodeBody:
    def test_json_by_content_type(self) -> None:
        response = httpx.Response(200, json=[1, 2])
        assert decode_body(response) == [1, 2]

    def test_text_otherwise(self) -> None:
        response = httpx.Response(200, text="{not json}")
        assert decode_body(response) == "{not json}"

    def test_empty_text(self) -> None:
        assert decode_body(httpx.Response(200)) == ""
