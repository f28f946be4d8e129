"""Per-user submission locks.

Every aggregator in the pipeline is a read-modify-write on rows keyed by
user. Running a user's whole submission under one lock keeps two racing
requests from both reading the same "before" counters.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import LockError

from learnloop.exceptions import LockTimeoutError

logger = structlog.get_logger()

LOCK_KEY = "lock:submission:{user_id}"


class SubmissionLock(Protocol):
    def hold(self, user_id: str) -> AsyncIterator[None]: ...


class InProcessSubmissionLock:
    """Keyed asyncio locks. Correct only within a single worker process."""

    def __init__(self, blocking_timeout: float | None = None) -> None:
        self.blocking_timeout = blocking_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        key = LOCK_KEY.format(user_id=user_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
            except asyncio.TimeoutError:
                raise LockTimeoutError(key) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


class RedisSubmissionLock:
    """Redis-backed lock shared by every API worker."""

    def __init__(
        self,
        redis: aioredis.Redis,
        timeout: float = 30.0,
        blocking_timeout: float = 10.0,
    ) -> None:
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        key = LOCK_KEY.format(user_id=user_id)
        lock = self.redis.lock(key, timeout=self.timeout, blocking_timeout=self.blocking_timeout)
        if not await lock.acquire():
            raise LockTimeoutError(key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired under us; the next holder already owns the key.
                logger.warning("submission_lock_expired", key=key, timeout=self.timeout)
