"""Unit tests for Redis cache service."""

import pytest

from connector_service.infrastructure.redis import CacheService, MemoryStore


class FailingRedis:
    """Stands in for a Redis client whose every call fails."""

    async def get(self, key):
        raise ConnectionError("redis down")

    async def mget(self, keys):
        raise ConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis down")

    async def delete(self, key):
        raise ConnectionError("redis down")

    async def ping(self):
        raise ConnectionError("redis down")


class ExpiringRedis:
    """In-memory stand-in for Redis that honors `ex` against a fake clock."""

    def __init__(self, clock) -> None:
        self.clock = clock
        self.data: dict[str, tuple[bytes, float | None]] = {}

    async def get(self, key):
        value, expires_at = self.data.get(key, (None, None))
        if expires_at is not None and self.clock() >= expires_at:
            self.data.pop(key, None)
            return None
        return value

    async def set(self, key, value, ex=None):
        self.data[key] = (value, self.clock() + ex if ex else None)

    async def delete(self, key):
        self.data.pop(key, None)


class TestCacheServiceMemoryFallback:
    """CacheService keeps working in-process when Redis is unavailable."""

    @pytest.fixture
    def cache(self) -> CacheService:
        return CacheService(None, MemoryStore())

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, cache: CacheService) -> None:
        assert await cache.get("any-key") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, cache: CacheService) -> None:
        await cache.set("key", {"data": "value"})
        assert await cache.get("key") == {"data": "value"}

    @pytest.mark.asyncio
    async def test_delete(self, cache: CacheService) -> None:
        await cache.set("key", "value")
        await cache.delete("key")
        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_get_many_preserves_order(self, cache: CacheService) -> None:
        await cache.set("a", 1)
        await cache.set("c", 3)
        assert await cache.get_many(["a", "b", "c"]) == [1, None, 3]

    @pytest.mark.asyncio
    async def test_health_check_returns_false(self, cache: CacheService) -> None:
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_failing_client_falls_back(self) -> None:
        cache = CacheService(FailingRedis(), MemoryStore())
        await cache.set("token", "abc")
        assert await cache.get("token") == "abc"
        assert await cache.get_many(["token"]) == ["abc"]
        assert await cache.health_check() is False


class TestMemoryStoreExpiry:
    def test_expired_entries_disappear(self) -> None:
        now = [1000.0]
        store = MemoryStore(clock=lambda: now[0])
        store.set("k", b"v", ttl_seconds=10)
        assert store.get("k") == b"v"

        now[0] += 10
        assert store.get("k") is None

    def test_no_ttl_never_expires(self) -> None:
        store = MemoryStore()
        store.set("k", b"v")
        assert store.get("k") == b"v"


class TestCacheServiceWithRedis:
    @pytest.mark.asyncio
    async def test_expired_redis_key_is_not_served_from_memory(self) -> None:
        now = [1000.0]

        def clock() -> float:
            return now[0]

        cache = CacheService(ExpiringRedis(clock), MemoryStore(clock=clock))

        await cache.set("auth:webflow:token:s1", "tok", ttl_seconds=10)
        assert await cache.get("auth:webflow:token:s1") == "tok"

        now[0] += 100
        assert await cache.get("auth:webflow:token:s1") is None

    @pytest.mark.asyncio
    async def test_delete_by_another_process_is_visible(self) -> None:
        redis = ExpiringRedis(lambda: 0.0)
        cache = CacheService(redis, MemoryStore())

        await cache.set("key", "value", ttl_seconds=None)
        assert await cache.get("key") == "value"
        await redis.delete("key")

        assert await cache.get("key") is None


class TestMemoryStoreSweep:
    def test_expired_entries_are_swept_on_write(self) -> None:
        now = [0.0]
        store = MemoryStore(clock=lambda: now[0], sweep_interval=60)
        for i in range(5):
            store.set(f"session:{i}", b"v", ttl_seconds=10)
        store.set("kept", b"v")
        assert len(store) == 6

        now[0] += 61
        store.set("fresh", b"v", ttl_seconds=10)

        assert len(store) == 2
        assert store.get("kept") == b"v"
