"""Shared test fixtures.

Unit and API tests run against the in-memory repositories in tests/fakes.py;
nothing here needs PostgreSQL or Redis.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

os.environ.setdefault("LEARNLOOP_JWT_SECRET", "test-secret-key-for-learnloop-tests")
os.environ.setdefault("LEARNLOOP_LOG_FORMAT", "console")
os.environ.setdefault("LEARNLOOP_CACHE_ENABLED", "false")

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from learnloop.attempts.pipeline import SubmissionPipeline, build_pipeline
from learnloop.attempts.service import AttemptHistoryService
from learnloop.auth.jwt import create_access_token
from learnloop.clock import FixedClock
from learnloop.config import get_settings
from learnloop.dependencies import (
    get_achievement_service,
    get_attempt_history,
    get_pipeline,
    get_progress_service,
    get_stats_service,
)
from learnloop.gamification.achievement_service import AchievementService
from learnloop.gamification.stats_service import StatsService
from learnloop.locks import InProcessSubmissionLock
from learnloop.main import create_app
from learnloop.progress.service import ProgressQueryService
from tests.fakes import FakeCache, FakeRepositories, InMemoryDatabase

get_settings.cache_clear()

USER_ID = "user-1"


@pytest.fixture
def clock() -> FixedClock:
    """Monday 2026-03-02 09:00 UTC."""
    return FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def db(clock: FixedClock) -> InMemoryDatabase:
    return InMemoryDatabase(clock)


@pytest.fixture
def repos(db: InMemoryDatabase) -> FakeRepositories:
    return FakeRepositories(db)


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def pipeline(repos: FakeRepositories, cache: FakeCache, clock: FixedClock) -> SubmissionPipeline:
    return build_pipeline(
        **repos.as_kwargs(),
        cache=cache,
        clock=clock,
        lock=InProcessSubmissionLock(blocking_timeout=5),
    )


@pytest.fixture
def topic(db: InMemoryDatabase):
    return db.add_topic("Fractions")


@pytest.fixture
def mc_problem(db: InMemoryDatabase, topic):
    """Multiple-choice problem whose answer is "B"."""
    return db.add_problem(topic.id, "B", type="multiple_choice")


@pytest.fixture
def app(
    pipeline: SubmissionPipeline,
    repos: FakeRepositories,
    cache: FakeCache,
    clock: FixedClock,
) -> FastAPI:
    """Application with the service graph wired to the in-memory fakes."""
    application = create_app()
    application.dependency_overrides[get_pipeline] = lambda: pipeline
    application.dependency_overrides[get_attempt_history] = lambda: AttemptHistoryService(repos.attempts)
    application.dependency_overrides[get_progress_service] = lambda: ProgressQueryService(repos.progress, cache)
    application.dependency_overrides[get_stats_service] = lambda: StatsService(repos.stats, cache, clock)
    application.dependency_overrides[get_achievement_service] = lambda: AchievementService(
        repos.achievements, cache, clock
    )
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(USER_ID)}"}
