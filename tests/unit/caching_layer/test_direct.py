"""
Unit Tests for the Direct Key-Value Facade

Tests envelopes, hooks, native counters and error policy.
"""

import pytest

from readthrough.caching.direct import DirectFacade
from readthrough.caching.tag_index import TagIndex
from readthrough.core.exceptions import CacheKeyError, StorageError
from tests.test_fixtures import FlakyStorageAdapter, StorageTestFactory
from tests.test_fixtures.request_factory import BOOKS


@pytest.fixture
def direct(memory_store, tag_index, tag_resolver, metrics_engine):
    return DirectFacade(memory_store, tag_index, tag_resolver, metrics_engine)


@pytest.fixture
def flaky_direct(tag_resolver, metrics_engine):
    store = FlakyStorageAdapter()
    return DirectFacade(store, TagIndex(store), tag_resolver, metrics_engine), store


@pytest.mark.unit
class TestBasicOperations:
    @pytest.mark.asyncio
    async def test_set_get_has_delete(self, direct):
        await direct.set("k", {"a": 1})

        assert await direct.get("k") == {"a": 1}
        assert await direct.has("k") is True
        assert await direct.delete("k") is True
        assert await direct.get("k") is None
        assert await direct.has("k") is False
        assert await direct.delete("k") is False

    @pytest.mark.asyncio
    async def test_value_is_stored_in_envelope(self, direct):
        await direct.set("k", 5, ttl=60, tags=["t"])

        raw = await direct.get_raw("k")

        assert raw["value"] == 5
        assert raw["tags"] == ["t"]
        assert raw["ttl"] == 60
        assert raw["timestamp"] > 0

    @pytest.mark.asyncio
    async def test_metadata_and_tags(self, direct):
        await direct.set("k", BOOKS, tags=[{"data": "ID", "prefix": "book:"}])

        assert await direct.tags("k") == ["book:1", "book:2"]
        metadata = await direct.metadata("k")
        assert "value" not in metadata
        assert metadata["key"] == "k"

    @pytest.mark.asyncio
    async def test_delete_by_tag(self, direct):
        await direct.set("a", 1, tags=["x"])
        await direct.set("b", 2, tags=["x", "y"])
        await direct.set("c", 3, tags=["y"])

        assert await direct.delete_by_tag("x") == 2
        assert await direct.get("c") == 3
        assert await direct.delete_by_tag("x") == 0

    @pytest.mark.asyncio
    async def test_delete_unregisters_tags(self, direct, tag_index, memory_store):
        await direct.set("a", 1, tags=["x"])
        await direct.set("b", 2, tags=["x"])

        await direct.delete("a")

        assert await tag_index.keys_for("x") == {"b"}
        assert await memory_store.get(TagIndex.storage_key("x")) == ["b"]

    @pytest.mark.asyncio
    async def test_overwrite_drops_stale_tags(self, direct, tag_index, memory_store):
        await direct.set("a", 1, tags=["x", "y"])

        await direct.set("a", 2, tags=["y"])

        assert await tag_index.keys_for("x") == set()
        assert await memory_store.get(TagIndex.storage_key("x")) is None
        assert await tag_index.keys_for("y") == {"a"}

    @pytest.mark.asyncio
    async def test_clear(self, direct):
        await direct.set("a", 1, tags=["x"])

        await direct.clear()

        assert await direct.get("a") is None
        assert await direct.delete_by_tag("x") == 0

    @pytest.mark.asyncio
    async def test_iterate_hides_reserved_keys(self, direct):
        await direct.set("a", 1, tags=["x"])

        keys = [entry.key async for entry in direct.iterate()]

        assert keys == ["a"]

    @pytest.mark.asyncio
    async def test_iterate_requires_iterable_adapter(self, tag_index, tag_resolver, metrics_engine):
        facade = DirectFacade(StorageTestFactory.dict_store(), tag_index, tag_resolver, metrics_engine)

        with pytest.raises(StorageError):
            async for _ in facade.iterate():
                pass


@pytest.mark.unit
class TestHooks:
    @pytest.mark.asyncio
    async def test_before_set_rewrites_ttl_and_value(self, direct):
        def adjust(event):
            event.ttl = 30
            event.value = event.value * 2

        direct.hooks.before_set.subscribe(adjust)

        await direct.set("k", 21)

        raw = await direct.get_raw("k")
        assert raw["value"] == 42
        assert raw["ttl"] == 30

    @pytest.mark.asyncio
    async def test_after_get_rewrites_result(self, direct):
        direct.hooks.after_get.subscribe(lambda event: setattr(event, "value", "masked"))
        await direct.set("k", "secret")

        assert await direct.get("k") == "masked"

    @pytest.mark.asyncio
    async def test_before_hook_error_aborts(self, direct):
        def reject(event):
            raise PermissionError("no writes")

        direct.hooks.before_set.subscribe(reject)

        with pytest.raises(PermissionError):
            await direct.set("k", 1)
        assert await direct.get_raw("k") is None

    @pytest.mark.asyncio
    async def test_delete_and_clear_hooks_fire(self, direct):
        seen = []
        direct.hooks.after_delete.subscribe(lambda event: seen.append(("delete", event.deleted)))
        direct.hooks.after_clear.subscribe(lambda event: seen.append(("clear", event.cleared)))
        await direct.set("k", 1)

        await direct.delete("k")
        await direct.clear()

        assert seen == [("delete", True), ("clear", True)]


@pytest.mark.unit
class TestNativeMetrics:
    @pytest.mark.asyncio
    async def test_native_counters_have_no_hit_miss(self, direct, metrics_engine):
        await direct.set("k", 1)
        await direct.get("k")
        await direct.get("missing")
        await direct.delete("k")

        stats = metrics_engine.current_stats()

        assert stats["native_sets"] == 1
        assert stats["native_gets"] == 2
        assert stats["native_deletes"] == 1
        assert stats["hits"] == 0
        assert stats["misses"] == 0

    @pytest.mark.asyncio
    async def test_key_metrics_track_native_hits(self, direct, metrics_engine):
        await direct.set("k", 1)
        await direct.get("k")

        key_stats = metrics_engine.current_key_metrics("k")

        assert key_stats["native_hits"] == 1
        assert key_stats["operation_type"] == "BASIC"


@pytest.mark.unit
class TestErrorPolicy:
    @pytest.mark.asyncio
    async def test_storage_errors_propagate_and_count(self, flaky_direct, metrics_engine):
        direct, store = flaky_direct
        store.fail_on.add("get")

        with pytest.raises(CacheKeyError):
            await direct.get("k")

        assert metrics_engine.current_stats()["native_errors"] == 1

    @pytest.mark.asyncio
    async def test_has_returns_false_on_error(self, flaky_direct):
        direct, store = flaky_direct
        store.fail_on.add("has")

        assert await direct.has("k") is False

    @pytest.mark.asyncio
    async def test_has_rethrows_when_configured(self, tag_index, tag_resolver, metrics_engine):
        store = FlakyStorageAdapter()
        store.fail_on.add("has")
        direct = DirectFacade(store, tag_index, tag_resolver, metrics_engine, throw_on_errors=True)

        with pytest.raises(CacheKeyError):
            await direct.has("k")
