"""Enqueue idempotent recompute jobs after a pipeline step fails.

Only full recomputations are retried (problem stats, topic progress). They
are safe to run any number of times, so job ids are derived from their
arguments and a burst of failures for the same problem queues one job.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from redis.exceptions import RedisError

logger = structlog.get_logger()


class RetryScheduler(Protocol):
    async def refresh_problem_stats(self, problem_id: str) -> None: ...

    async def rebuild_topic_progress(self, user_id: str, topic_id: str) -> None: ...

    async def close(self) -> None: ...


class NullRetryScheduler:
    """Used when no job queue is configured; failures are only logged."""

    async def refresh_problem_stats(self, problem_id: str) -> None:
        logger.warning("retry_queue_disabled", job="refresh_problem_stats", problem_id=problem_id)

    async def rebuild_topic_progress(self, user_id: str, topic_id: str) -> None:
        logger.warning("retry_queue_disabled", job="rebuild_topic_progress", user_id=user_id, topic_id=topic_id)

    async def close(self) -> None:
        return None


class ArqRetryScheduler:
    def __init__(self, pool: ArqRedis) -> None:
        self.pool = pool

    @classmethod
    async def connect(cls, redis_url: str) -> ArqRetryScheduler:
        return cls(await create_pool(RedisSettings.from_dsn(redis_url)))

    async def refresh_problem_stats(self, problem_id: str) -> None:
        await self._enqueue("refresh_problem_stats", problem_id, job_id=f"refresh_problem_stats:{problem_id}")

    async def rebuild_topic_progress(self, user_id: str, topic_id: str) -> None:
        await self._enqueue(
            "rebuild_topic_progress",
            user_id,
            topic_id,
            job_id=f"rebuild_topic_progress:{user_id}:{topic_id}",
        )

    async def close(self) -> None:
        await self.pool.aclose()

    async def _enqueue(self, function: str, *args: str, job_id: str) -> None:
        try:
            job = await self.pool.enqueue_job(function, *args, _job_id=job_id)
        except (RedisError, OSError):
            logger.error("retry_enqueue_failed", job=function, job_id=job_id, exc_info=True)
            return
        if job is None:
            logger.info("retry_already_queued", job=function, job_id=job_id)
        else:
            logger.info("retry_enqueued", job=function, job_id=job_id)
