"""Problem lookup (read-through cached) and solve statistics."""

from __future__ import annotations

import asyncio

import structlog

from learnloop.attempts.repository import AttemptRepository
from learnloop.cache.coordinator import Cache
from learnloop.cache.keys import PROBLEM_CACHE_TTL, problem_key
from learnloop.clock import Clock
from learnloop.exceptions import NotFoundError
from learnloop.problems.repository import ProblemRepository
from learnloop.problems.schemas import ProblemRecord

logger = structlog.get_logger()


class ProblemService:
    def __init__(self, problems: ProblemRepository, cache: Cache) -> None:
        self.problems = problems
        self.cache = cache

    async def find_by_id(self, problem_id: str) -> ProblemRecord:
        """Cache first, then the store. Raises NotFoundError for missing or deleted problems."""
        cache_key = problem_key(problem_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return ProblemRecord.model_validate(cached)

        problem = await self.problems.find_by_id(problem_id)
        if problem is None:
            raise NotFoundError("Problem not found")

        record = ProblemRecord.model_validate(problem)
        await self.cache.set(cache_key, record.model_dump(mode="json"), PROBLEM_CACHE_TTL)
        return record


class ProblemStatsAggregator:
    """Recomputes solve_count and correct_rate from the full attempt history."""

    def __init__(
        self,
        problems: ProblemRepository,
        attempts: AttemptRepository,
        cache: Cache,
        clock: Clock,
    ) -> None:
        self.problems = problems
        self.attempts = attempts
        self.cache = cache
        self.clock = clock

    async def refresh(self, problem_id: str) -> tuple[int, float]:
        total, correct = await asyncio.gather(
            self.attempts.count_for_problem(problem_id),
            self.attempts.count_correct_for_problem(problem_id),
        )
        correct_rate = correct / total if total > 0 else 0.0

        await self.problems.update_stats(problem_id, total, correct_rate, self.clock.now())
        await self.cache.delete(problem_key(problem_id))

        logger.debug("problem_stats_refreshed", problem_id=problem_id, solve_count=total, correct_rate=correct_rate)
        return total, correct_rate
