"""Tests for mrouter.routing: templates, registry, groups and builders."""

from __future__ import annotations

import pytest

from mrouter.errors import ConfigurationError
from mrouter.handlers import CallableHandler
from mrouter.middleware import MiddlewareRegistry
from mrouter.routing import (
    PatternCache,
    Route,
    RouteRef,
    Router,
    compile_pattern,
    join_prefix,
    normalize_uri,
    split_path,
)


def _handler() -> CallableHandler:
    return CallableHandler(lambda *args: "ok")


def _router() -> Router:
    return Router(MiddlewareRegistry())


# =====================================================================
# Path normalization
# =====================================================================


class TestNormalizeUri:
    @pytest.mark.parametrize(
        ("uri", "expected"),
        [
            ("/", "/"),
            ("", "/"),
            ("/hello", "/hello"),
            ("/hello/", "/hello"),
            ("hello", "/hello"),
            ("//hello//", "/hello"),
        ],
    )
    def test_without_prefix(self, uri: str, expected: str) -> None:
        assert normalize_uri(uri) == expected

    def test_with_prefix(self) -> None:
        assert normalize_uri("/dashboard", "admin") == "/admin/dashboard"
        assert normalize_uri("/", "admin") == "/admin"
        assert normalize_uri("dashboard/", "/admin/") == "/admin/dashboard"

    def test_join_prefix(self) -> None:
        assert join_prefix("", "/admin/") == "admin"
        assert join_prefix("admin", "/users") == "admin/users"
        assert join_prefix("admin", "") == "admin"

    def test_split_path(self) -> None:
        assert split_path("/") == []
        assert split_path("") == []
        assert split_path("/a/b/") == ["a", "b"]
        assert split_path("/a//b") == ["a", "", "b"]


# =====================================================================
# Pattern compiler
# =====================================================================


class TestCompilePattern:
    def test_static(self) -> None:
        pattern = compile_pattern("/health")
        assert pattern.param_names == ()
        assert pattern.match("/health") == ()
        assert pattern.match("/other") is None

    def test_root(self) -> None:
        pattern = compile_pattern("/")
        assert pattern.match("/") == ()
        assert pattern.match("/x") is None

    def test_params_in_declaration_order(self) -> None:
        pattern = compile_pattern("/user/{id}/post/{slug}")
        assert pattern.param_names == ("id", "slug")
        assert pattern.match("/user/7/post/hello-world") == ("7", "hello-world")

    def test_trailing_slash_is_optional(self) -> None:
        assert compile_pattern("/hello/").match("/hello") == ()
        assert compile_pattern("/hello").match("/hello/") == ()

    def test_extra_suffix_is_rejected(self) -> None:
        pattern = compile_pattern("/user/{id}")
        assert pattern.match("/user/7/edit") is None
        assert pattern.match("/user/7x") == ("7x",)

    def test_placeholder_does_not_cross_slashes(self) -> None:
        pattern = compile_pattern("/files/{name}")
        assert pattern.match("/files/a/b") is None

    def test_placeholder_must_be_non_empty(self) -> None:
        pattern = compile_pattern("/a/{x}/b")
        assert pattern.match("/a//b") is None
        assert compile_pattern("/user/{id}").match("/user/") is None

    def test_literal_match_is_exact(self) -> None:
        pattern = compile_pattern("/Users")
        assert pattern.match("/users") is None

    def test_partial_segment_placeholder_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="whole segment"):
            compile_pattern("/files/{name}.txt")

    def test_non_identifier_name_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid placeholder name"):
            compile_pattern("/x/{not-valid}")

    def test_duplicate_name_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate placeholder"):
            compile_pattern("/{id}/{id}")

    def test_compilation_is_idempotent(self) -> None:
        assert compile_pattern("/a/{b}") == compile_pattern("/a/{b}")


class TestPatternCache:
    def test_lazily_populated(self) -> None:
        cache = PatternCache()
        assert "/a/{b}" not in cache
        first = cache.get("/a/{b}")
        assert "/a/{b}" in cache
        assert cache.get("/a/{b}") is first
        assert len(cache) == 1


# =====================================================================
# Registry
# =====================================================================


class TestRouterRegistration:
    def test_routes_kept_in_order_per_method(self) -> None:
        router = _router()
        router.add_route("get", "/a", _handler())
        router.add_route("POST", "/b", _handler())
        router.add_route("GET", "/c", _handler())
        assert [r.uri for r in router.routes_for("GET")] == ["/a", "/c"]
        assert [r.uri for r in router.routes] == ["/a", "/b", "/c"]

    def test_uri_is_normalized(self) -> None:
        router = _router()
        route = router.add_route("GET", "hello/", _handler())
        assert route.uri == "/hello"
        assert route.method == "GET"

    def test_invalid_template_rejected_at_registration(self) -> None:
        router = _router()
        with pytest.raises(ConfigurationError):
            router.add_route("GET", "/x/{a}b", _handler())
        assert router.routes == []

    def test_first_registered_wins(self) -> None:
        router = _router()
        first = router.add_route("GET", "/user/{id}", _handler())
        router.add_route("GET", "/user/me", _handler())
        found = router.match("GET", "/user/me")
        assert found is not None
        assert found[0] is first
        assert found[1] == ("me",)

    def test_match_filters_by_method(self) -> None:
        router = _router()
        router.add_route("POST", "/x", _handler())
        assert router.match("GET", "/x") is None
        assert router.match("post", "/x") is not None

    def test_frozen_router_rejects_registration(self) -> None:
        router = _router()
        router.freeze()
        with pytest.raises(ConfigurationError, match="after dispatch"):
            router.add_route("GET", "/late", _handler())


class TestGroups:
    def test_prefix_applied(self) -> None:
        router = _router()
        with router.group("/admin"):
            route = router.add_route("GET", "/dashboard", _handler())
        assert route.uri == "/admin/dashboard"

    def test_nested_equals_composed(self) -> None:
        nested = _router()
        with nested.group("/a"), nested.group("b/"):
            deep = nested.add_route("GET", "/c", _handler())

        flat = _router()
        with flat.group("a/b"):
            shallow = flat.add_route("GET", "c", _handler())

        assert deep.uri == shallow.uri == "/a/b/c"

    def test_state_restored_after_nesting(self) -> None:
        router = _router()
        with router.group("/a", ["x"]):
            with router.group("/b", ["y"]):
                assert router.prefix == "a/b"
                assert router.group_middleware == ("x", "y")
            assert router.prefix == "a"
            assert router.group_middleware == ("x",)
        assert router.prefix == ""
        assert router.group_middleware == ()

    def test_state_restored_when_body_raises(self) -> None:
        router = _router()
        with pytest.raises(RuntimeError), router.group("/a", ["auth"]):
            raise RuntimeError("boom")
        assert router.prefix == ""
        assert router.group_middleware == ()

    def test_group_middleware_bound_to_routes(self) -> None:
        middleware = MiddlewareRegistry()
        router = Router(middleware)
        with router.group("/admin", ["auth"]), router.group("/reports", ["auth", "audit"]):
            router.add_route("GET", "/daily", _handler())
        assert middleware.bound("GET", "/admin/reports/daily") == ("auth", "auth", "audit")

    def test_no_binding_without_group_middleware(self) -> None:
        middleware = MiddlewareRegistry()
        router = Router(middleware)
        with router.group("/public"):
            router.add_route("GET", "/page", _handler())
        assert middleware.bound("GET", "/public/page") == ()


# =====================================================================
# Route builder
# =====================================================================


class TestRouteRef:
    def _ref(self) -> tuple[Router, Route, RouteRef]:
        router = _router()
        route = router.add_route("GET", "/posts", _handler())
        return router, route, RouteRef(router, [route])

    def test_chaining_returns_same_ref(self) -> None:
        _, _, ref = self._ref()
        assert ref.middleware(["a"]).name("posts.list").with_("k", "v") is ref

    def test_middleware_replaces(self) -> None:
        router, _, ref = self._ref()
        ref.middleware(["a", "b"]).middleware(["c"])
        assert router.middleware.bound("GET", "/posts") == ("c",)

    def test_middleware_accepts_single_name(self) -> None:
        router, _, ref = self._ref()
        ref.middleware("auth")
        assert router.middleware.bound("GET", "/posts") == ("auth",)

    def test_name_last_wins(self) -> None:
        router, _, ref = self._ref()
        other = router.add_route("GET", "/archive", _handler())

        ref.name("posts")
        RouteRef(router, [other]).name("posts")
        assert router.lookup_named_route("posts") == "/archive"
        assert router.lookup_named_route("missing") is None

    def test_with_merges_metadata(self) -> None:
        _, route, ref = self._ref()
        ref.with_("title", "Posts").with_("title", "All posts").with_("cache", 60)
        assert route.data == {"title": "All posts", "cache": 60}

    def test_frozen_router_rejects_builder_changes(self) -> None:
        router, route, ref = self._ref()
        router.freeze()
        with pytest.raises(ConfigurationError):
            ref.middleware(["auth"])
        with pytest.raises(ConfigurationError):
            ref.with_("k", "v")
        assert router.middleware.bound("GET", "/posts") == ()
        assert route.data == {}

    def test_details(self) -> None:
        _, route, ref = self._ref()
        ref.with_("description", "Displays all posts")
        [details] = ref.details()
        assert details["method"] == "GET"
        assert details["uri"] == "/posts"
        assert details["handler"] is route.handler
        assert details["data"] == {"description": "Displays all posts"}
