"""Tests for wren.context — store registration, lazy properties, freeze."""

import asyncio

import pytest

from wren.context import Context, ContextStore, context_var, get_context
from wren.errors import ConfigurationError


class TestStoreRegistration:
    def test_set_and_get(self) -> None:
        store = ContextStore()
        store.set("answer", 42)
        assert store.get("answer") == 42
        assert store.has("answer") is True

    def test_get_missing_returns_default(self) -> None:
        store = ContextStore()
        assert store.get("missing") is None
        assert store.get("missing", "fallback") == "fallback"
        assert store.has("missing") is False

    def test_get_bound_returns_factory_without_calling(self) -> None:
        calls: list[object] = []

        def factory(ctx: Context) -> str:
            calls.append(ctx)
            return "value"

        store = ContextStore()
        store.bind("thing", factory)
        assert store.get("thing") is factory
        assert calls == []

    def test_set_replaces_bound(self) -> None:
        store = ContextStore()
        store.bind("db", lambda ctx: "session")
        store.set("db", "static")
        assert store.create().get("db") == "static"

    def test_bind_replaces_shared(self) -> None:
        store = ContextStore()
        store.set("db", "static")
        store.bind("db", lambda ctx: "session")
        assert store.create().get("db") == "session"

    def test_bind_rejects_non_callable(self) -> None:
        store = ContextStore()
        with pytest.raises(ConfigurationError, match="must be callable"):
            store.bind("db", "not a function")  # type: ignore[arg-type]

    @pytest.mark.parametrize("name", ["request", "response", "params", "error"])
    def test_reserved_names_rejected(self, name: str) -> None:
        store = ContextStore()
        with pytest.raises(ConfigurationError, match="reserved"):
            store.set(name, 1)

    @pytest.mark.parametrize("name", ["get", "has", "resolved"])
    def test_context_method_names_rejected(self, name: str) -> None:
        store = ContextStore()
        with pytest.raises(ConfigurationError, match="reserved"):
            store.bind(name, lambda ctx: 1)

    def test_non_identifier_rejected(self) -> None:
        store = ContextStore()
        with pytest.raises(ConfigurationError, match="identifiers"):
            store.set("not-valid", 1)


class TestStoreFreeze:
    def test_create_freezes(self) -> None:
        store = ContextStore()
        assert store.frozen is False
        store.create()
        assert store.frozen is True

    def test_registration_after_create_rejected(self) -> None:
        store = ContextStore()
        store.create()
        with pytest.raises(ConfigurationError, match="frozen"):
            store.set("late", 1)
        with pytest.raises(ConfigurationError, match="frozen"):
            store.bind("late", lambda ctx: 1)

    def test_freeze_idempotent(self) -> None:
        store = ContextStore()
        store.freeze()
        store.freeze()
        assert store.frozen is True


class TestContext:
    def test_fields_default(self) -> None:
        ctx = ContextStore().create("req", "res")
        assert ctx.request == "req"
        assert ctx.response == "res"
        assert ctx.params == {}
        assert ctx.error is None

    def test_shared_value_returned_verbatim(self) -> None:
        settings = {"debug": True}
        store = ContextStore()
        store.set("settings", settings)
        first, second = store.create(), store.create()
        assert first.get("settings") is settings
        assert second.get("settings") is settings

    def test_bound_factory_runs_once_per_context(self) -> None:
        calls: list[Context] = []

        def factory(ctx: Context) -> object:
            calls.append(ctx)
            return object()

        store = ContextStore()
        store.bind("session", factory)
        ctx = store.create()
        assert calls == []

        value = ctx.get("session")
        assert ctx.get("session") is value
        assert calls == [ctx]

    def test_bound_values_are_per_context(self) -> None:
        store = ContextStore()
        store.bind("session", lambda ctx: object())
        first, second = store.create(), store.create()
        assert first.get("session") is not second.get("session")

    def test_none_result_memoized(self) -> None:
        calls = 0

        def factory(ctx: Context) -> None:
            nonlocal calls
            calls += 1

        store = ContextStore()
        store.bind("nothing", factory)
        ctx = store.create()
        assert ctx.resolved("nothing") is False
        assert ctx.get("nothing") is None
        assert ctx.get("nothing") is None
        assert calls == 1
        assert ctx.resolved("nothing") is True

    def test_factory_receives_context(self) -> None:
        store = ContextStore()
        store.bind("method", lambda ctx: ctx.request)
        ctx = store.create(request="GET")
        assert ctx.get("method") == "GET"

    def test_attribute_access(self) -> None:
        store = ContextStore()
        store.set("greeting", "hi")
        store.bind("db", lambda ctx: "session")
        ctx = store.create()
        assert ctx.greeting == "hi"
        assert ctx.db == "session"

    def test_unknown_attribute_raises(self) -> None:
        ctx = ContextStore().create()
        with pytest.raises(AttributeError, match="no property 'missing'"):
            _ = ctx.missing

    def test_attribute_assignment_attaches_property(self) -> None:
        ctx = ContextStore().create()
        ctx.user = "alice"
        assert ctx.user == "alice"
        assert ctx.get("user") == "alice"
        assert ctx.has("user") is True

    def test_set_attaches_property(self) -> None:
        ctx = ContextStore().create()
        ctx.set("user", "bob")
        assert ctx.user == "bob"

    def test_attached_property_shadows_store(self) -> None:
        store = ContextStore()
        store.set("theme", "light")
        store.bind("db", lambda ctx: "session")
        ctx = store.create()
        ctx.theme = "dark"
        ctx.db = "override"
        assert ctx.theme == "dark"
        assert ctx.db == "override"
        assert ctx.resolved("db") is False

    def test_attached_properties_are_per_context(self) -> None:
        store = ContextStore()
        first, second = store.create(), store.create()
        first.user = "alice"
        assert second.has("user") is False
        with pytest.raises(AttributeError):
            _ = second.user

    def test_well_known_fields_assignable(self) -> None:
        ctx = ContextStore().create()
        ctx.params = {"id": "1"}
        ctx.error = ValueError("x")
        assert ctx.params == {"id": "1"}
        assert ctx.has("params") is False

    @pytest.mark.parametrize("name", ["request", "get", "has", "resolved", "set", "_hidden"])
    def test_set_rejects_reserved_names(self, name: str) -> None:
        ctx = ContextStore().create()
        with pytest.raises(AttributeError, match="reserved"):
            ctx.set(name, 1)

    def test_method_names_not_assignable(self) -> None:
        ctx = ContextStore().create()
        with pytest.raises(AttributeError, match="reserved"):
            ctx.get = lambda name: None

    def test_has(self) -> None:
        store = ContextStore()
        store.set("a", 1)
        store.bind("b", lambda ctx: 2)
        ctx = store.create()
        assert ctx.has("a") is True
        assert ctx.has("b") is True
        assert ctx.has("c") is False

    def test_repr_includes_target(self) -> None:
        class FakeRequest:
            method = "GET"
            url = "/users/1"

        ctx = ContextStore().create(FakeRequest())
        assert "GET /users/1" in repr(ctx)


class TestCurrentContext:
    def test_outside_request_raises(self) -> None:
        with pytest.raises(LookupError):
            get_context()

    async def test_set_within_task(self) -> None:
        ctx = ContextStore().create()

        async def inner() -> Context:
            return get_context()

        token = context_var.set(ctx)
        try:
            assert await asyncio.create_task(inner()) is ctx
        finally:
            context_var.reset(token)
