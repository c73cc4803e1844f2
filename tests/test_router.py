"""Tests for perch.routing — path parsing, trie matching, route map compilation."""

import logging

import pytest

from perch.errors import ConfigurationError, MethodNotAllowed, NotFound
from perch.routing import compile_routes
from perch.routing.route import Route, parse_path
from perch.routing.router import Router


def _handler(ctx: object) -> str:
    return "ok"


def _other(ctx: object) -> str:
    return "other"


def _router(*routes: tuple[str, str]) -> Router:
    router = Router()
    for path, method in routes:
        router.add(Route(path=path, method=method, handler=_handler))
    router.compile()
    return router


class TestParsePath:
    def test_static(self) -> None:
        assert [s.text for s in parse_path("/api/v2/users")] == ["api", "v2", "users"]

    def test_root(self) -> None:
        assert parse_path("/") == []

    def test_brace_param(self) -> None:
        seg = parse_path("/users/{id}")[1]
        assert seg.name == "id"
        assert seg.converter == "str"

    def test_literal_has_no_name(self) -> None:
        assert parse_path("/users")[0].name is None

    def test_colon_param(self) -> None:
        seg = parse_path("/users/:id")[1]
        assert seg.name == "id"
        assert seg.converter == "str"

    def test_typed_param(self) -> None:
        assert parse_path("/users/{id:int}")[1].converter == "int"

    def test_unknown_converter(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown path converter"):
            parse_path("/users/{id:uuid}")


class TestMatch:
    def test_static(self) -> None:
        match = _router(("/hello", "GET")).match("GET", "/hello")
        assert match.route.path == "/hello"
        assert match.path_params == {}

    def test_root(self) -> None:
        assert _router(("/", "GET")).match("GET", "/").route.path == "/"

    def test_trailing_slash_ignored(self) -> None:
        assert _router(("/hello", "GET")).match("GET", "/hello/").route.path == "/hello"

    def test_param(self) -> None:
        match = _router(("/users/{name}", "GET")).match("GET", "/users/alice")
        assert match.path_params == {"name": "alice"}

    def test_static_beats_param(self) -> None:
        router = _router(("/users/{name}", "GET"), ("/users/me", "GET"))
        assert router.match("GET", "/users/me").route.path == "/users/me"
        assert router.match("GET", "/users/bob").route.path == "/users/{name}"

    def test_int_converter_rejects_text(self) -> None:
        router = _router(("/items/{id:int}", "GET"))
        assert router.match("GET", "/items/42").path_params == {"id": "42"}
        with pytest.raises(NotFound):
            router.match("GET", "/items/abc")

    def test_sibling_params_keep_their_own_names(self) -> None:
        router = _router(("/items/:id", "GET"), ("/items/:item_id/tags", "GET"))
        assert router.match("GET", "/items/7").path_params == {"id": "7"}
        assert router.match("GET", "/items/7/tags").path_params == {"item_id": "7"}

    def test_sibling_converters_both_reachable(self) -> None:
        router = Router()
        router.add(Route(path="/items/{slug}", method="GET", handler=_other))
        router.add(Route(path="/items/{id:int}", method="GET", handler=_handler))
        router.compile()
        by_id = router.match("GET", "/items/42")
        assert by_id.route.handler is _handler
        assert by_id.path_params == {"id": "42"}
        by_slug = router.match("GET", "/items/blue")
        assert by_slug.route.handler is _other
        assert by_slug.path_params == {"slug": "blue"}

    def test_methods_on_one_path_name_params_independently(self) -> None:
        router = _router(("/users/:id", "GET"), ("/users/{user_id}", "DELETE"))
        assert router.match("GET", "/users/3").path_params == {"id": "3"}
        assert router.match("DELETE", "/users/3").path_params == {"user_id": "3"}

    def test_catch_all(self) -> None:
        match = _router(("/files/{rest:path}", "GET")).match("GET", "/files/a/b/c.txt")
        assert match.path_params == {"rest": "a/b/c.txt"}

    def test_not_found(self) -> None:
        with pytest.raises(NotFound):
            _router(("/hello", "GET")).match("GET", "/nope")

    def test_method_not_allowed(self) -> None:
        router = _router(("/items", "GET"), ("/items", "POST"))
        with pytest.raises(MethodNotAllowed) as exc_info:
            router.match("DELETE", "/items")
        assert exc_info.value.status == 405
        assert exc_info.value.headers == (("Allow", "GET, POST"),)

    def test_add_after_compile(self) -> None:
        router = _router(("/a", "GET"))
        with pytest.raises(RuntimeError):
            router.add(Route(path="/b", method="GET", handler=_handler))

    def test_routes_listing(self) -> None:
        router = _router(("/a", "GET"), ("/a", "POST"), ("/b/{x}", "GET"))
        assert {(r.path, r.method) for r in router.routes} == {
            ("/a", "GET"),
            ("/a", "POST"),
            ("/b/{x}", "GET"),
        }


class TestCompileRoutes:
    def test_methods_are_case_insensitive(self) -> None:
        router = compile_routes({"/hello": {"get": _handler, "Post": _other}})
        assert router.match("GET", "/hello").route.handler is _handler
        assert router.match("POST", "/hello").route.handler is _other

    def test_every_pair_registered(self) -> None:
        router = compile_routes(
            {"/a": {"get": _handler, "delete": _handler}, "/b": {"put": _handler}}
        )
        assert len(router.routes) == 3

    def test_unknown_method(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported method 'head'"):
            compile_routes({"/a": {"head": _handler}})

    def test_non_callable_handler(self) -> None:
        with pytest.raises(ConfigurationError, match="not callable"):
            compile_routes({"/a": {"get": "nope"}})

    def test_route_config_must_be_mapping(self) -> None:
        with pytest.raises(ConfigurationError, match="must map method names to handlers"):
            compile_routes({"/a": [_handler]})  # type: ignore[dict-item]

    def test_method_key_must_be_str(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported method 1"):
            compile_routes({"/a": {1: _handler}})  # type: ignore[dict-item]

    def test_path_must_start_with_slash(self) -> None:
        with pytest.raises(ConfigurationError, match="must start with '/'"):
            compile_routes({"a": {"get": _handler}})

    def test_empty_map(self) -> None:
        with pytest.raises(NotFound):
            compile_routes({}).match("GET", "/")

    def test_later_registration_wins(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="perch.server"):
            router = compile_routes({"/a": {"get": _handler}, "/a/": {"get": _other}})
        assert router.match("GET", "/a").route.handler is _other
        assert any("overrides" in r.message for r in caplog.records)
