"""Integration: the full pipeline over PostgreSQL.

Runs only when LEARNLOOP_TEST_DATABASE_URL points at a disposable database;
the schema is dropped and recreated for each test.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from learnloop.attempts.pipeline import build_pipeline
from learnloop.attempts.repository import AttemptNumberTaken, SqlAttemptRepository
from learnloop.clock import FixedClock
from learnloop.db.base import Base
from learnloop.db.models import Problem, Topic, new_id
from learnloop.gamification.repository import SqlAchievementRepository, SqlStatsRepository
from learnloop.gamification.seed import ACHIEVEMENT_SEED_DATA, seed_achievements
from learnloop.locks import InProcessSubmissionLock
from learnloop.problems.repository import SqlProblemRepository
from learnloop.progress.repository import SqlProgressRepository
from tests.fakes import FakeCache

DATABASE_URL = os.environ.get("LEARNLOOP_TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(DATABASE_URL is None, reason="LEARNLOOP_TEST_DATABASE_URL not set"),
]


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def problem(session_factory):
    topic = Topic(id=new_id(), name="Fractions")
    problem = Problem(id=new_id(), topic_id=topic.id, type="multiple_choice", answer="B")
    async with session_factory() as session:
        session.add(topic)
        await session.flush()
        session.add(problem)
        await session.commit()
    return problem


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def sql_pipeline(session_factory, clock):
    return build_pipeline(
        problems=SqlProblemRepository(session_factory),
        attempts=SqlAttemptRepository(session_factory),
        progress=SqlProgressRepository(session_factory),
        stats=SqlStatsRepository(session_factory),
        achievements=SqlAchievementRepository(session_factory),
        cache=FakeCache(),
        clock=clock,
        lock=InProcessSubmissionLock(blocking_timeout=10),
    )


class TestSqlPipeline:
    @pytest.mark.asyncio
    async def test_first_correct_submission(self, sql_pipeline, session_factory, problem):
        attempt = await sql_pipeline.submit_attempt("u1", problem.id, "B", 30)

        assert attempt.attempt_number == 1
        stats = await SqlStatsRepository(session_factory).get("u1")
        assert (stats.total_xp, stats.level, stats.current_streak, stats.total_problems_solved) == (10, 1, 1, 1)
        progress = await SqlProgressRepository(session_factory).get("u1", problem.topic_id)
        assert (progress.problems_solved, progress.correct_count, progress.mastery_level) == (1, 1, 1.0)
        stored = await SqlProblemRepository(session_factory).find_by_id(problem.id)
        assert (stored.solve_count, stored.correct_rate) == (1, 1.0)

    @pytest.mark.asyncio
    async def test_concurrent_submissions_numbered_contiguously(self, sql_pipeline, problem):
        attempts = await asyncio.gather(*(sql_pipeline.submit_attempt("u1", problem.id, "B") for _ in range(5)))
        assert sorted(a.attempt_number for a in attempts) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_seeded_achievement_granted_once(self, sql_pipeline, session_factory, problem):
        await seed_achievements(session_factory)

        await sql_pipeline.submit_attempt("u1", problem.id, "B")
        await sql_pipeline.submit_attempt("u1", problem.id, "B")

        grants = await SqlAchievementRepository(session_factory).list_grants("u1")
        assert len(grants) == 1
        stats = await SqlStatsRepository(session_factory).get("u1")
        # Two correct answers plus the "First Steps" reward.
        assert stats.total_xp == 30


class TestRepositories:
    @pytest.mark.asyncio
    async def test_duplicate_attempt_number_raises(self, session_factory, problem, clock):
        attempts = SqlAttemptRepository(session_factory)
        fields = {
            "user_id": "u1",
            "problem_id": problem.id,
            "submitted_answer": "B",
            "is_correct": True,
            "time_taken": 0,
            "attempt_number": 1,
            "created_at": clock.now(),
        }
        await attempts.create(**fields)
        with pytest.raises(AttemptNumberTaken):
            await attempts.create(**fields)

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, session_factory):
        assert await seed_achievements(session_factory) == len(ACHIEVEMENT_SEED_DATA)
        assert await seed_achievements(session_factory) == 0

    @pytest.mark.asyncio
    async def test_seeded_definitions_listed_in_seed_order(self, session_factory):
        await seed_achievements(session_factory)
        definitions = await SqlAchievementRepository(session_factory).list_definitions()
        assert [d.name for d in definitions] == [d["name"] for d in ACHIEVEMENT_SEED_DATA]

    @pytest.mark.asyncio
    async def test_grant_conflict_returns_none(self, session_factory, clock):
        await seed_achievements(session_factory)
        repo = SqlAchievementRepository(session_factory)
        [definition, *_] = await repo.list_definitions()

        assert await repo.create_grant("u1", definition.id, clock.now()) is not None
        assert await repo.create_grant("u1", definition.id, clock.now()) is None
