"""Read-through cache over Redis.

Values are stored as JSON documents. Writers never update cached values in
place: after a store write the owning service deletes the key and the next
read repopulates it.

Redis being unavailable must not fail a request. Reads fall back to the
store; deletes are logged and the stale entry lives until its TTL.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger()


class Cache(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def keys_matching(self, pattern: str) -> list[str]: ...


class CacheCoordinator:
    """Owns the Redis client used for caching."""

    def __init__(self, redis_url: str, enabled: bool = True) -> None:
        self.redis_url = redis_url
        self.enabled = enabled
        self._client: aioredis.Redis | None = None

    @classmethod
    def from_client(cls, client: aioredis.Redis) -> CacheCoordinator:
        """Wrap an already-connected client (workers, tests)."""
        coordinator = cls(redis_url="", enabled=True)
        coordinator._client = client
        return coordinator

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            msg = "Cache not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if not self.enabled or self._client is not None:
            return
        self._client = aioredis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
        logger.info("cache_connected", redis_url=self.redis_url)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        if self._client is None:
            return False
        return bool(await self._client.ping())

    async def get(self, key: str) -> Any | None:
        if self._client is None:
            return None
        try:
            raw = await self._client.get(key)
        except RedisError:
            logger.warning("cache_read_failed", key=key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_entry_corrupt", key=key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self._client is None:
            return
        try:
            await self._client.setex(key, ttl_seconds, json.dumps(value, default=str))
        except RedisError:
            logger.warning("cache_write_failed", key=key, exc_info=True)

    async def delete(self, *keys: str) -> None:
        if self._client is None or not keys:
            return
        try:
            await self._client.delete(*keys)
        except RedisError:
            logger.warning("cache_invalidate_failed", keys=list(keys), exc_info=True)

    async def keys_matching(self, pattern: str) -> list[str]:
        if self._client is None:
            return []
        try:
            return [key async for key in self._client.scan_iter(match=pattern)]
        except RedisError:
            logger.warning("cache_scan_failed", pattern=pattern, exc_info=True)
            return []
