"""arq worker for pipeline retries.

Import path for arq CLI: arq learnloop.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq.connections import RedisSettings

from learnloop.cache.coordinator import CacheCoordinator
from learnloop.clock import SystemClock
from learnloop.config import get_settings
from learnloop.database import close_db, get_session_factory, init_db
from learnloop.dependencies import build_services
from learnloop.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database and cache, and build the services the jobs use."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)

    cache = CacheCoordinator(settings.redis_url, enabled=settings.cache_enabled)
    await cache.connect()

    ctx["cache"] = cache
    # Jobs take the submission lock, so it must be the one the API holds.
    ctx["services"] = build_services(settings, get_session_factory(), cache, SystemClock(), shared_lock=True)
    logger.info("Retry worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    cache: CacheCoordinator | None = ctx.get("cache")
    if cache:
        await cache.disconnect()
    await close_db()
    logger.info("Retry worker shut down")


async def refresh_problem_stats(ctx: dict, problem_id: str) -> dict:  # type: ignore[type-arg]
    """Recompute a problem's solve_count and correct_rate."""
    solve_count, correct_rate = await ctx["services"].pipeline.problem_stats.refresh(problem_id)
    return {"problem_id": problem_id, "solve_count": solve_count, "correct_rate": correct_rate}


async def rebuild_topic_progress(ctx: dict, user_id: str, topic_id: str) -> dict:  # type: ignore[type-arg]
    """Recompute a user's topic progress from their graded attempts."""
    pipeline = ctx["services"].pipeline
    async with pipeline.lock.hold(user_id):
        progress = await pipeline.progress.rebuild(user_id, topic_id)
    return {"user_id": user_id, "topic_id": topic_id, "problems_solved": progress.problems_solved}


class WorkerSettings:
    """arq worker settings for the retry queue."""

    functions = [refresh_problem_stats, rebuild_topic_progress]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 10
    max_tries = 5
    # Job ids are reused for de-duplication; drop results so the id frees up.
    keep_result = 0
