"""Attempt submission pipeline.

One submission fans out into every piece of derived state, in this order:

    1. grade + persist the attempt (AttemptSequencer)
    2. problem solve_count / correct_rate (ProblemStatsAggregator)
    3. topic progress, graded attempts only (ProgressAggregator)
    4. XP, level, streak (AccountStatsAggregator)
    5. achievements (AchievementEvaluator)

Each aggregator deletes its own cache keys right after its write. The whole
chain runs under the user's submission lock so two concurrent submissions
by the same user cannot interleave their read-modify-write steps.

Once step 1 commits, the attempt is durable. A later failure is logged,
queued for retry where the step is a full recompute, and re-raised.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from learnloop.attempts.repository import AttemptRepository
from learnloop.attempts.sequencer import AttemptSequencer
from learnloop.cache.coordinator import Cache
from learnloop.clock import Clock
from learnloop.db.models import Attempt
from learnloop.gamification.achievement_service import AchievementEvaluator
from learnloop.gamification.repository import AchievementRepository, StatsRepository
from learnloop.gamification.stats_service import AccountStatsAggregator
from learnloop.grading.grader import Verdict
from learnloop.locks import SubmissionLock
from learnloop.problems.repository import ProblemRepository
from learnloop.problems.service import ProblemService, ProblemStatsAggregator
from learnloop.progress.repository import ProgressRepository
from learnloop.progress.service import ProgressAggregator
from learnloop.workers.retry import NullRetryScheduler, RetryScheduler

logger = structlog.get_logger()

T = TypeVar("T")


class SubmissionPipeline:
    def __init__(
        self,
        *,
        sequencer: AttemptSequencer,
        problem_stats: ProblemStatsAggregator,
        progress: ProgressAggregator,
        account_stats: AccountStatsAggregator,
        achievements: AchievementEvaluator,
        lock: SubmissionLock,
        retry: RetryScheduler | None = None,
    ) -> None:
        self.sequencer = sequencer
        self.problem_stats = problem_stats
        self.progress = progress
        self.account_stats = account_stats
        self.achievements = achievements
        self.lock = lock
        self.retry = retry or NullRetryScheduler()

    async def submit_attempt(
        self,
        user_id: str,
        problem_id: str,
        submitted_answer: Any,
        time_taken: int = 0,
    ) -> Attempt:
        async with self.lock.hold(user_id):
            attempt, problem, verdict = await self.sequencer.submit(
                user_id, problem_id, submitted_answer, time_taken
            )
            log = logger.bind(user_id=user_id, problem_id=problem_id, attempt_id=attempt.id)

            await self._step(
                "problem_stats",
                log,
                lambda: self.problem_stats.refresh(problem_id),
                retry=lambda: self.retry.refresh_problem_stats(problem_id),
            )
            if verdict is not Verdict.UNGRADED:
                await self._step(
                    "progress",
                    log,
                    lambda: self.progress.update(user_id, problem.topic_id, verdict is Verdict.CORRECT),
                    retry=lambda: self.retry.rebuild_topic_progress(user_id, problem.topic_id),
                )
            await self._step(
                "account_stats",
                log,
                lambda: self.account_stats.update(user_id, verdict, time_taken),
            )
            await self._step("achievements", log, lambda: self.achievements.evaluate(user_id))

        return attempt

    async def _step(
        self,
        name: str,
        log: structlog.stdlib.BoundLogger,
        call: Callable[[], Awaitable[T]],
        retry: Callable[[], Awaitable[None]] | None = None,
    ) -> T:
        try:
            return await call()
        except Exception:
            log.error("pipeline_step_failed", step=name, exc_info=True)
            if retry is not None:
                await retry()
            raise


def build_pipeline(
    *,
    problems: ProblemRepository,
    attempts: AttemptRepository,
    progress: ProgressRepository,
    stats: StatsRepository,
    achievements: AchievementRepository,
    cache: Cache,
    clock: Clock,
    lock: SubmissionLock,
    retry: RetryScheduler | None = None,
    streak_timezone: str = "UTC",
    sequence_max_retries: int = 3,
) -> SubmissionPipeline:
    """Wire the pipeline from its repositories."""
    return SubmissionPipeline(
        sequencer=AttemptSequencer(
            ProblemService(problems, cache), attempts, clock, max_retries=sequence_max_retries
        ),
        problem_stats=ProblemStatsAggregator(problems, attempts, cache, clock),
        progress=ProgressAggregator(progress, attempts, cache, clock),
        account_stats=AccountStatsAggregator(stats, cache, clock, streak_timezone=streak_timezone),
        achievements=AchievementEvaluator(achievements, stats, cache, clock),
        lock=lock,
        retry=retry,
    )
