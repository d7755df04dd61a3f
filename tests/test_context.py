"""Tests for Context registry, lookup and value retrieval."""

import gc
import uuid

import pytest

from bindwire.binding import Binding
from bindwire.context import Context
from bindwire.exceptions import BindingNotFoundError, InvalidBindingKeyError, LockedBindingError


@pytest.fixture()
def parent() -> Context:
    context = Context(name="parent")
    context.bind("app.name").to("shop")
    context.bind("app.version").to("1.0").tag("meta")
    context.bind("app.db.url").to("sqlite://")
    context.bind("shared").to("from parent")
    return context


@pytest.fixture()
def child(parent: Context) -> Context:
    context = Context(parent, "child")
    context.bind("shared").to("from child")
    context.bind("request.id").to(7).tag("request", "meta")
    return context


class TestContextRegistry:
    def test_name_defaults_to_a_uuid(self) -> None:
        uuid.UUID(Context().name)

    def test_bind_returns_a_registered_binding(self, empty_ctx: Context) -> None:
        binding = empty_ctx.bind("a")

        assert isinstance(binding, Binding)
        assert empty_ctx.registry["a"] is binding

    def test_bind_rejects_invalid_keys(self, empty_ctx: Context) -> None:
        with pytest.raises(InvalidBindingKeyError):
            empty_ctx.bind("a#b")

    def test_bind_replaces_an_existing_binding(self, empty_ctx: Context) -> None:
        empty_ctx.bind("a").to(1)
        empty_ctx.bind("a").to(2)

        assert empty_ctx.get_sync("a") == 2

    def test_locked_binding_cannot_be_rebound(self, empty_ctx: Context) -> None:
        empty_ctx.bind("a").to(1).lock()

        with pytest.raises(LockedBindingError) as exc_info:
            empty_ctx.bind("a")

        assert exc_info.value.key == "a"
        assert exc_info.value.context_name == "empty"
        assert empty_ctx.get_sync("a") == 1

    def test_locked_parent_binding_can_be_shadowed(self, parent: Context) -> None:
        parent.registry["app.name"].lock()
        child = Context(parent, "child")

        child.bind("app.name").to("override")

        assert child.get_sync("app.name") == "override"

    def test_unbind(self, empty_ctx: Context) -> None:
        empty_ctx.bind("a").to(1)

        assert empty_ctx.unbind("a") is True
        assert empty_ctx.unbind("a") is False
        assert not empty_ctx.contains("a")

    def test_locked_binding_cannot_be_unbound(self, empty_ctx: Context) -> None:
        empty_ctx.bind("a").to(1).lock()

        with pytest.raises(LockedBindingError):
            empty_ctx.unbind("a")

    def test_unbind_leaves_parent_bindings(self, child: Context, parent: Context) -> None:
        assert child.unbind("app.name") is False
        assert parent.contains("app.name")

    def test_contains_and_is_bound(self, child: Context) -> None:
        assert child.contains("request.id")
        assert not child.contains("app.name")
        assert child.is_bound("app.name")
        assert not child.is_bound("missing")

    def test_get_owner_context(self, child: Context, parent: Context) -> None:
        assert child.get_owner_context("app.name") is parent
        assert child.get_owner_context("shared") is child
        assert child.get_owner_context("missing") is None

    def test_to_json(self, empty_ctx: Context) -> None:
        empty_ctx.bind("a").to(1)

        assert empty_ctx.to_json() == {
            "a": {"key": "a", "scope": "transient", "type": "constant", "tags": [], "is_locked": False},
        }


class TestContextLookup:
    def test_walks_the_parent_chain(self, child: Context) -> None:
        assert child.get_sync("app.name") == "shop"

    def test_child_binding_shadows_parent(self, child: Context, parent: Context) -> None:
        assert child.get_sync("shared") == "from child"
        assert parent.get_sync("shared") == "from parent"

    def test_missing_key_reports_context_name(self, child: Context) -> None:
        with pytest.raises(BindingNotFoundError, match="The key 'missing' was not bound to any value in context 'child'"):
            child.get_binding("missing")

    def test_parent_is_weakly_referenced(self) -> None:
        root = Context(name="root")
        child = Context(root, "child")
        assert child.parent is root

        del root
        gc.collect()

        assert child.parent is None

    def test_key_with_property_path(self, empty_ctx: Context) -> None:
        class Pool:
            size = 5

        empty_ctx.bind("config").to({"db": {"url": "sqlite://", "pool": Pool()}})

        assert empty_ctx.get_sync("config#db.url") == "sqlite://"
        assert empty_ctx.get_sync("config#db.pool.size") == 5
        assert empty_ctx.get_sync("config#db.missing") is None
        assert empty_ctx.get_sync("config#")["db"]["url"] == "sqlite://"

    def test_get_value_returns_synchronous_values_directly(self, child: Context) -> None:
        assert child.get_value("app.name") == "shop"

    async def test_get_awaits_values(self, child: Context) -> None:
        assert await child.get("request.id") == 7

    async def test_get_raises_for_missing_keys(self, child: Context) -> None:
        with pytest.raises(BindingNotFoundError):
            await child.get("missing")


class TestContextFind:
    def test_find_all(self, child: Context) -> None:
        keys = [binding.key for binding in child.find()]

        assert keys == ["shared", "request.id", "app.name", "app.version", "app.db.url"]

    def test_find_by_key_pattern(self, child: Context) -> None:
        assert [binding.key for binding in child.find("app.*")] == ["app.name", "app.version"]
        assert [binding.key for binding in child.find("app.*.url")] == ["app.db.url"]
        assert [binding.key for binding in child.find("app.nam?")] == ["app.name"]

    def test_find_shadows_parent_bindings(self, child: Context) -> None:
        found = child.find("shared")

        assert len(found) == 1
        assert child.get_sync("shared") == "from child"
        assert found[0] is child.registry["shared"]

    def test_find_with_predicate(self, child: Context) -> None:
        found = child.find(lambda binding: binding.key.startswith("request"))

        assert [binding.key for binding in found] == ["request.id"]

    def test_find_by_tag(self, child: Context) -> None:
        assert [binding.key for binding in child.find_by_tag("meta")] == ["request.id", "app.version"]
        assert [binding.key for binding in child.find_by_tag("req*")] == ["request.id"]
