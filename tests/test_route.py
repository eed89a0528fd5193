"""Tests for wren.routing.route — route builder and path normalization."""

import pytest

from wren.errors import ConfigurationError
from wren.routing.route import HTTP_METHODS, Route, join_paths, normalize_path


def _handler(ctx) -> str:
    return "ok"


def _middleware(ctx, next) -> None:
    next()


class TestNormalizePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("", "/"),
            ("/", "/"),
            ("users", "/users"),
            ("/users/", "/users"),
            ("/users/42?x=1", "/users/42"),
            ("/docs#intro", "/docs"),
            ("/a/b?q=1#frag", "/a/b"),
            ("/?x=1", "/"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_path(raw) == expected


class TestJoinPaths:
    def test_no_prefix(self) -> None:
        assert join_paths("", "users") == "/users"

    def test_root_prefix(self) -> None:
        assert join_paths("/", "/users") == "/users"

    def test_prefix_and_path(self) -> None:
        assert join_paths("/api/", "/users/") == "/api/users"

    def test_root_path_under_prefix(self) -> None:
        assert join_paths("/api", "/") == "/api"


class TestRoute:
    def test_path_normalized(self) -> None:
        assert Route("users/").path == "/users"

    def test_get_registers_head_and_get(self) -> None:
        route = Route("/").get(_handler)
        assert route.methods == frozenset({"HEAD", "GET"})

    def test_each_method_sugar(self) -> None:
        route = Route("/x")
        route.post(_handler).put(_handler).patch(_handler).delete(_handler).options(_handler)
        assert route.methods == frozenset({"POST", "PUT", "PATCH", "DELETE", "OPTIONS"})

    def test_head_only(self) -> None:
        assert Route("/x").head(_handler).methods == frozenset({"HEAD"})

    def test_all_registers_every_method(self) -> None:
        assert Route("/x").all(_handler).methods == HTTP_METHODS

    def test_any_upper_cases_methods(self) -> None:
        route = Route("/x").any(["get", "post"], _handler)
        assert route.methods == frozenset({"GET", "POST"})

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported HTTP method 'TRACE'"):
            Route("/x").any(["TRACE"], _handler)

    def test_empty_methods_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="At least one HTTP method"):
            Route("/x").any([], _handler)

    def test_duplicate_method_rejected(self) -> None:
        route = Route("/x").post(_handler)
        with pytest.raises(ConfigurationError, match="already defined"):
            route.post(_handler)

    def test_get_after_head_rejected(self) -> None:
        route = Route("/x").head(_handler)
        with pytest.raises(ConfigurationError, match="'HEAD' already defined"):
            route.get(_handler)

    def test_rejected_registration_leaves_route_unchanged(self) -> None:
        route = Route("/x").head(_handler)
        with pytest.raises(ConfigurationError):
            route.get(_handler)
        assert route.methods == frozenset({"HEAD"})

    def test_no_handlers_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="At least one route handler"):
            Route("/x").get()

    def test_non_callable_handler_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="must be callable"):
            Route("/x").get(_middleware, "nope")

    def test_chain_ends_in_wrapped_terminal(self) -> None:
        route = Route("/x").post(_middleware, _handler)
        [(method, chain)] = list(route.handlers())
        assert method == "POST"
        assert len(chain) == 2
        assert chain[0] is _middleware
        assert chain[1] is not _handler
        assert chain[1].__wrapped__ is _handler

    def test_router_middleware_prepended(self) -> None:
        def shared(ctx, next) -> None:
            next()

        route = Route("/x", middleware=[shared]).post(_middleware, _handler)
        [(_, chain)] = list(route.handlers())
        assert chain[:2] == (shared, _middleware)

    def test_prefix(self) -> None:
        route = Route("/users", "/api")
        assert route.path == "/api/users"
        route.prefix("/v2")
        assert route.path == "/v2/users"

    def test_as_sets_name(self) -> None:
        route = Route("/users").as_("users.index")
        assert route.name == "users.index"

    def test_as_idempotent(self) -> None:
        route = Route("/users").as_("a").as_("a")
        assert route.name == "a"

    def test_frozen_route_rejects_changes(self) -> None:
        route = Route("/x").get(_handler)
        route.freeze()
        with pytest.raises(ConfigurationError, match="after it has been compiled"):
            route.post(_handler)
        with pytest.raises(ConfigurationError):
            route.as_("late")

    def test_repr(self) -> None:
        route = Route("/users").get(_handler).as_("users")
        assert repr(route) == "<Route GET,HEAD /users name='users'>"
