"""
Tests for the Store serialization boundary and its backends.
"""

import pytest

from review_hub.exceptions import StoreCorruptionError
from review_hub.storage.backends import MemoryBackend, RedisBackend, create_backend
from review_hub.storage.store import Store


class FakeRedisClient:
    """Dict-backed stand-in for a redis.asyncio client with decode_responses."""

    def __init__(self):
        self.hashes = {}
        self.lists = {}
        self.values = {}
        self.closed = False

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key):
        # Real servers return hash fields in no particular order
        return dict(sorted(self.hashes.get(key, {}).items(), reverse=True))

    async def hset(self, key, field, value):
        fields = self.hashes.setdefault(key, {})
        added = 0 if field in fields else 1
        fields[field] = value
        return added

    async def hdel(self, key, field):
        self.hashes.get(key, {}).pop(field, None)

    async def lrem(self, key, count, value):
        self.lists[key] = [item for item in self.lists.get(key, []) if item != value]

    async def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)

    async def lrange(self, key, start, stop):
        items = self.lists.get(key, [])
        return items[start:] if stop == -1 else items[start:stop + 1]

    async def llen(self, key):
        return len(self.lists.get(key, []))

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.hashes.pop(key, None)
            self.lists.pop(key, None)
            self.values.pop(key, None)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def store(backend):
    return Store(backend)


class TestDecode:

    def test_json_text_is_parsed(self):
        assert Store.decode("k", '{"a": 1}') == {"a": 1}

    def test_already_materialized_values_pass_through(self):
        assert Store.decode("k", {"a": 1}) == {"a": 1}
        assert Store.decode("k", [1, 2]) == [1, 2]
        assert Store.decode("k", 3) == 3

    def test_bytes_are_decoded(self):
        assert Store.decode("k", b'["x"]') == ["x"]

    def test_invalid_json_raises_corruption(self):
        with pytest.raises(StoreCorruptionError) as exc_info:
            Store.decode("apps[1]", "{not json")
        assert exc_info.value.key == "apps[1]"


class TestHashes:

    async def test_get_all_keeps_insertion_order(self, store):
        await store.put("apps", "b", {"id": "b"})
        await store.put("apps", "a", {"id": "a"})
        await store.put("apps", "c", {"id": "c"})

        assert [r["id"] for r in await store.get_all("apps")] == ["b", "a", "c"]

    async def test_put_replaces_existing_record(self, store):
        await store.put("apps", "a", {"id": "a", "name": "old"})
        await store.put("apps", "a", {"id": "a", "name": "new"})

        assert await store.get_by_id("apps", "a") == {"id": "a", "name": "new"}
        assert len(await store.get_all("apps")) == 1

    async def test_corrupt_record_is_skipped(self, store, backend):
        await store.put("apps", "a", {"id": "a"})
        await backend.hset("apps", "bad", "{oops")
        await store.put("apps", "c", {"id": "c"})

        assert [r["id"] for r in await store.get_all("apps")] == ["a", "c"]
        assert await store.get_by_id("apps", "bad") is None

    async def test_missing_record_is_none(self, store):
        assert await store.get_by_id("apps", "nope") is None

    async def test_delete_cascades_to_dependent_keys(self, store):
        await store.put("apps", "a", {"id": "a"})
        await store.append_to_list("reviews:a", [{"id": 1}])
        await store.set_scalar("rating_history:a", [{"date": "x"}])

        await store.delete("apps", "a", dependent_keys=["reviews:a", "rating_history:a"])

        assert await store.get_by_id("apps", "a") is None
        assert await store.read_list("reviews:a") == []
        assert await store.get_scalar("rating_history:a") is None


class TestLists:

    async def test_iter_list_pages_through_all_items(self, store, backend):
        await store.append_to_list("l", [{"n": i} for i in range(5)])

        calls = []
        original = backend.lrange

        async def counting_lrange(key, start, stop):
            calls.append((start, stop))
            return await original(key, start, stop)

        backend.lrange = counting_lrange
        items = [item async for item in store.iter_list("l", page_size=2)]

        assert [item["n"] for item in items] == [0, 1, 2, 3, 4]
        assert calls == [(0, 1), (2, 3), (4, 5)]

    async def test_iter_list_resumes_from_start(self, store):
        await store.append_to_list("l", [{"n": i} for i in range(5)])

        items = [item async for item in store.iter_list("l", page_size=2, start=3)]

        assert [item["n"] for item in items] == [3, 4]

    async def test_corrupt_list_item_is_skipped(self, store, backend):
        await store.append_to_list("l", [{"n": 0}])
        await backend.rpush("l", "not-json")
        await store.append_to_list("l", [{"n": 2}])

        assert [item["n"] for item in await store.read_list("l")] == [0, 2]

    async def test_append_returns_count_and_ignores_empty(self, store):
        assert await store.append_to_list("l", [1, 2, 3]) == 3
        assert await store.append_to_list("l", []) == 0
        assert await store.list_length("l") == 3

    async def test_failed_page_read_ends_sequence(self, store, backend):
        async def broken_lrange(key, start, stop):
            raise ConnectionError("down")

        backend.lrange = broken_lrange

        assert await store.read_list("l") == []


class TestScalars:

    async def test_round_trip(self, store):
        await store.set_scalar("s", [{"name": "US", "value": 2}])
        assert await store.get_scalar("s") == [{"name": "US", "value": 2}]

    async def test_absent_or_corrupt_returns_default(self, store, backend):
        assert await store.get_scalar("missing", default=[]) == []

        await backend.set("s", "{broken")
        assert await store.get_scalar("s", default=[]) == []


class TestBackends:

    def test_memory_backend_without_redis_settings(self):
        assert isinstance(create_backend(url=None, token=None), MemoryBackend)
        assert isinstance(create_backend(url="redis://localhost:6379", token=None), MemoryBackend)

    def test_redis_backend_when_url_and_token_set(self):
        backend = create_backend(url="redis://localhost:6379/0", token="secret")
        assert isinstance(backend, RedisBackend)

    async def test_store_over_redis_backend(self):
        client = FakeRedisClient()
        store = Store(RedisBackend("redis://unused", client=client))

        await store.put("apps", "a", {"id": "a"})
        await store.append_to_list("reviews:a", [{"id": "r1"}, {"id": "r2"}])

        assert client.hashes["apps"]["a"] == '{"id":"a"}'
        assert await store.get_all("apps") == [{"id": "a"}]
        assert [r["id"] for r in await store.read_list("reviews:a", page_size=1)] == ["r1", "r2"]

        await store.close()
        assert client.closed

    async def test_redis_hash_keeps_insertion_order(self):
        client = FakeRedisClient()
        store = Store(RedisBackend("redis://unused", client=client))

        for record_id in ("b", "c", "a"):
            await store.put("apps", record_id, {"id": record_id})
        await store.put("apps", "c", {"id": "c", "name": "renamed"})
        await store.delete("apps", "b")
        await store.put("apps", "b", {"id": "b"})

        assert [r["id"] for r in await store.get_all("apps")] == ["c", "a", "b"]
        assert client.lists["apps:order"] == ["c", "a", "b"]

    async def test_redis_hash_delete_drops_order_list(self):
        client = FakeRedisClient()
        backend = RedisBackend("redis://unused", client=client)

        await backend.hset("apps", "a", "{}")
        await backend.delete("apps")

        assert "apps" not in client.hashes
        assert "apps:order" not in client.lists
