"""Service composition and the FastAPI dependencies that expose it."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnloop.attempts.pipeline import SubmissionPipeline, build_pipeline
from learnloop.attempts.repository import SqlAttemptRepository
from learnloop.attempts.service import AttemptHistoryService
from learnloop.cache.coordinator import CacheCoordinator
from learnloop.clock import Clock
from learnloop.config import Settings
from learnloop.gamification.achievement_service import AchievementService
from learnloop.gamification.repository import SqlAchievementRepository, SqlStatsRepository
from learnloop.gamification.stats_service import StatsService
from learnloop.locks import InProcessSubmissionLock, RedisSubmissionLock, SubmissionLock
from learnloop.problems.repository import SqlProblemRepository
from learnloop.progress.repository import SqlProgressRepository
from learnloop.progress.service import ProgressQueryService
from learnloop.workers.retry import RetryScheduler


@dataclass
class Services:
    pipeline: SubmissionPipeline
    attempts: AttemptHistoryService
    progress: ProgressQueryService
    stats: StatsService
    achievements: AchievementService


def build_lock(settings: Settings, cache: CacheCoordinator, *, shared: bool = False) -> SubmissionLock:
    """Per-user submission lock for this process.

    The lock lives in Redis when configured, when the retry queue is enabled
    (worker jobs must exclude API submissions), or when the caller asks for a
    shared lock. In those cases an unconnected cache is a startup error.
    """
    if settings.lock_backend == "redis" or settings.retry_queue_enabled or shared:
        if not cache.connected:
            msg = "Submission lock requires Redis but the cache is disabled or not connected"
            raise RuntimeError(msg)
        return RedisSubmissionLock(
            cache.client,
            timeout=settings.lock_timeout_seconds,
            blocking_timeout=settings.lock_blocking_timeout_seconds,
        )
    return InProcessSubmissionLock(blocking_timeout=settings.lock_blocking_timeout_seconds)


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    cache: CacheCoordinator,
    clock: Clock,
    retry: RetryScheduler | None = None,
    *,
    shared_lock: bool = False,
) -> Services:
    problems = SqlProblemRepository(session_factory)
    attempts = SqlAttemptRepository(session_factory)
    progress = SqlProgressRepository(session_factory)
    stats = SqlStatsRepository(session_factory)
    achievements = SqlAchievementRepository(session_factory)

    pipeline = build_pipeline(
        problems=problems,
        attempts=attempts,
        progress=progress,
        stats=stats,
        achievements=achievements,
        cache=cache,
        clock=clock,
        lock=build_lock(settings, cache, shared=shared_lock),
        retry=retry,
        streak_timezone=settings.streak_timezone,
        sequence_max_retries=settings.sequence_max_retries,
    )
    return Services(
        pipeline=pipeline,
        attempts=AttemptHistoryService(attempts),
        progress=ProgressQueryService(progress, cache),
        stats=StatsService(stats, cache, clock),
        achievements=AchievementService(achievements, cache, clock),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_pipeline(request: Request) -> SubmissionPipeline:
    return get_services(request).pipeline


def get_attempt_history(request: Request) -> AttemptHistoryService:
    return get_services(request).attempts


def get_progress_service(request: Request) -> ProgressQueryService:
    return get_services(request).progress


def get_stats_service(request: Request) -> StatsService:
    return get_services(request).stats


def get_achievement_service(request: Request) -> AchievementService:
    return get_services(request).achievements


def get_cache(request: Request) -> CacheCoordinator:
    return request.app.state.cache
