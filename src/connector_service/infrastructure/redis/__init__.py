"""Redis storage with an in-process fallback."""

import time
from typing import Any

import orjson
import redis.asyncio as aioredis
import structlog

from connector_service.config import get_settings

logger = structlog.get_logger()

_redis_client: aioredis.Redis | None = None
_redis_unavailable = False


async def get_redis_client() -> aioredis.Redis | None:
    """Get or create the global async Redis client."""
    global _redis_client, _redis_unavailable
    if _redis_client is None and not _redis_unavailable:
        settings = get_settings()
        try:
            _redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning("Redis unavailable, using in-memory storage", error=str(e))
            _redis_client = None
            _redis_unavailable = True
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client, _redis_unavailable
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
    _redis_unavailable = False


class MemoryStore:
    """Process-local key/value store honoring expiry.

    Expired entries are dropped when read, and swept from the whole store at
    most once per ``sweep_interval`` seconds on write.
    """

    def __init__(self, clock=time.monotonic, sweep_interval: float = 60.0) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._data: dict[str, tuple[bytes, float | None]] = {}

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        expires_at = now + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._data[key]
        self._next_sweep = now + self._sweep_interval


_memory_store = MemoryStore()


class CacheService:
    """Async Redis cache with orjson serialization.

    Every write is mirrored into a process-local store. Reads only use that
    store when Redis is missing or a call fails; a Redis miss is a miss.
    """

    def __init__(self, client: aioredis.Redis | None, memory: MemoryStore | None = None):
        self.client = client
        self.memory = memory if memory is not None else _memory_store

    async def get(self, key: str) -> Any | None:
        if self.client:
            try:
                data = await self.client.get(key)
                return orjson.loads(data) if data else None
            except Exception as e:
                logger.warning("Cache get failed", key=key, error=str(e))
        data = self.memory.get(key)
        return orjson.loads(data) if data else None

    async def get_many(self, keys: list[str]) -> list[Any | None]:
        if self.client and keys:
            try:
                values = await self.client.mget(keys)
                return [orjson.loads(v) if v else None for v in values]
            except Exception as e:
                logger.warning("Cache mget failed", keys=keys, error=str(e))
        results = []
        for key in keys:
            data = self.memory.get(key)
            results.append(orjson.loads(data) if data else None)
        return results

    async def set(self, key: str, value: Any, ttl_seconds: int | None = 300) -> None:
        data = orjson.dumps(value)
        self.memory.set(key, data, ttl_seconds)
        if not self.client:
            return
        try:
            await self.client.set(key, data, ex=ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        self.memory.delete(key)
        if not self.client:
            return
        try:
            await self.client.delete(key)
        except Exception as e:
            logger.warning("Cache delete failed", key=key, error=str(e))

    async def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.ping()
        except Exception:
            return False


async def get_cache() -> CacheService:
    """Dependency for FastAPI to get the shared cache service."""
    return CacheService(await get_redis_client())
