"""
Key/value backends for the review store.

Two implementations share one async interface with hash, list and scalar
operations: an in-process MemoryBackend and a RedisBackend. The backend is
chosen once at process start by create_backend().
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from review_hub.config.settings import REDIS_URL, REDIS_TOKEN
from review_hub.utils.logger import get_logger


class KVBackend(ABC):
    """Raw key/value operations. Values are stored exactly as given."""

    name: str = "kv"

    @abstractmethod
    async def hget(self, key: str, field: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def hgetall(self, key: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def hset(self, key: str, field: str, value: Any) -> None:
        ...

    @abstractmethod
    async def hdel(self, key: str, field: str) -> None:
        ...

    @abstractmethod
    async def rpush(self, key: str, *values: Any) -> None:
        ...

    @abstractmethod
    async def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        """Inclusive range; stop=-1 reads to the end, like Redis LRANGE."""

    @abstractmethod
    async def llen(self, key: str) -> int:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        ...

    async def close(self) -> None:
        """Release connections. No-op by default."""


class MemoryBackend(KVBackend):
    """Dict-backed backend; data lives only as long as the process."""

    name = "memory"

    def __init__(self):
        self._hashes: Dict[str, Dict[str, Any]] = {}
        self._lists: Dict[str, List[Any]] = {}
        self._scalars: Dict[str, Any] = {}

    async def hget(self, key: str, field: str) -> Optional[Any]:
        return self._hashes.get(key, {}).get(field)

    async def hgetall(self, key: str) -> Dict[str, Any]:
        return dict(self._hashes.get(key, {}))

    async def hset(self, key: str, field: str, value: Any) -> None:
        self._hashes.setdefault(key, {})[field] = value

    async def hdel(self, key: str, field: str) -> None:
        self._hashes.get(key, {}).pop(field, None)

    async def rpush(self, key: str, *values: Any) -> None:
        self._lists.setdefault(key, []).extend(values)

    async def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        items = self._lists.get(key, [])
        end = len(items) if stop == -1 else stop + 1
        return list(items[start:end])

    async def llen(self, key: str) -> int:
        return len(self._lists.get(key, []))

    async def get(self, key: str) -> Optional[Any]:
        return self._scalars.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._scalars[key] = value

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._hashes.pop(key, None)
            self._lists.pop(key, None)
            self._scalars.pop(key, None)


class RedisBackend(KVBackend):
    """
    Backend on a Redis server, through redis.asyncio.

    Redis hashes carry no field order, so every hash keeps a companion
    "<key>:order" list of its fields in insertion order.
    """

    name = "redis"

    def __init__(self, url: str, token: Optional[str] = None, client: Any = None):
        """
        Args:
            url: Redis connection URL (redis:// or rediss://)
            token: Password / access token for the server
            client: Pre-built client, used instead of url/token when given
        """
        self.url = url
        self._client = client or redis.from_url(
            url,
            password=token,
            decode_responses=True,
        )

    @staticmethod
    def order_key(key: str) -> str:
        return f"{key}:order"

    async def hget(self, key: str, field: str) -> Optional[Any]:
        return await self._client.hget(key, field)

    async def hgetall(self, key: str) -> Dict[str, Any]:
        raw = await self._client.hgetall(key) or {}
        order = await self._client.lrange(self.order_key(key), 0, -1)

        ordered = {field: raw[field] for field in order if field in raw}
        # Fields written before the order list existed go last
        for field, value in raw.items():
            ordered.setdefault(field, value)
        return ordered

    async def hset(self, key: str, field: str, value: Any) -> None:
        added = await self._client.hset(key, field, value)
        if added:
            await self._client.rpush(self.order_key(key), field)

    async def hdel(self, key: str, field: str) -> None:
        await self._client.hdel(key, field)
        await self._client.lrem(self.order_key(key), 0, field)

    async def rpush(self, key: str, *values: Any) -> None:
        if values:
            await self._client.rpush(key, *values)

    async def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        return await self._client.lrange(key, start, stop)

    async def llen(self, key: str) -> int:
        return await self._client.llen(key)

    async def get(self, key: str) -> Optional[Any]:
        return await self._client.get(key)

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(key, value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._client.delete(*keys, *(self.order_key(key) for key in keys))

    async def close(self) -> None:
        await self._client.aclose()


def create_backend(
    url: Optional[str] = REDIS_URL,
    token: Optional[str] = REDIS_TOKEN,
    logger: Optional[logging.Logger] = None
) -> KVBackend:
    """
    Pick the storage backend for this process.

    Redis is used only when both the URL and the token are configured;
    otherwise, or if the client cannot be built, the in-memory backend is
    returned.
    """
    logger = logger or get_logger("storage")

    if url and token:
        try:
            backend = RedisBackend(url, token)
            logger.info("Using Redis storage backend")
            return backend
        except Exception as e:
            logger.error(f"Failed to create Redis client, using memory: {e}")

    logger.info("Using in-memory storage backend")
    return MemoryBackend()
