"""Per-topic mastery.

mastery_level is always correct_count / problems_solved and is only ever
moved by graded attempts. Ungraded (essay) attempts never reach here.
"""

from __future__ import annotations

import structlog

from learnloop.attempts.repository import AttemptRepository
from learnloop.cache.coordinator import Cache
from learnloop.cache.keys import USER_PROGRESS_CACHE_TTL, user_progress_key
from learnloop.clock import Clock
from learnloop.exceptions import NotFoundError
from learnloop.progress.repository import ProgressRepository
from learnloop.progress.schemas import ProgressResponse, TopicProgressResponse

logger = structlog.get_logger()


def mastery(correct_count: int, problems_solved: int) -> float:
    return correct_count / problems_solved if problems_solved > 0 else 0.0


class ProgressAggregator:
    def __init__(
        self,
        progress: ProgressRepository,
        attempts: AttemptRepository,
        cache: Cache,
        clock: Clock,
    ) -> None:
        self.progress = progress
        self.attempts = attempts
        self.cache = cache
        self.clock = clock

    async def update(self, user_id: str, topic_id: str, is_correct: bool) -> ProgressResponse:
        """Count one graded attempt towards the user's topic progress."""
        existing = await self.progress.get(user_id, topic_id)
        problems_solved = (existing.problems_solved if existing else 0) + 1
        correct_count = (existing.correct_count if existing else 0) + (1 if is_correct else 0)
        result = await self._save(user_id, topic_id, problems_solved, correct_count)
        logger.info(
            "progress_updated",
            user_id=user_id,
            topic_id=topic_id,
            problems_solved=problems_solved,
            mastery_level=result.mastery_level,
        )
        return result

    async def rebuild(self, user_id: str, topic_id: str) -> ProgressResponse:
        """Recompute the counters from the user's graded attempts in the topic."""
        graded, correct = await self.attempts.graded_counts_for_topic(user_id, topic_id)
        result = await self._save(user_id, topic_id, graded, correct)
        logger.info("progress_rebuilt", user_id=user_id, topic_id=topic_id, problems_solved=graded)
        return result

    async def _save(self, user_id: str, topic_id: str, problems_solved: int, correct_count: int) -> ProgressResponse:
        row = await self.progress.upsert(
            user_id=user_id,
            topic_id=topic_id,
            problems_solved=problems_solved,
            correct_count=correct_count,
            mastery_level=mastery(correct_count, problems_solved),
            now=self.clock.now(),
        )
        await self.cache.delete(user_progress_key(user_id, topic_id))
        return ProgressResponse.model_validate(row)


class ProgressQueryService:
    def __init__(self, progress: ProgressRepository, cache: Cache) -> None:
        self.progress = progress
        self.cache = cache

    async def list_mine(self, user_id: str) -> list[TopicProgressResponse]:
        rows = await self.progress.list_for_user(user_id)
        return [
            TopicProgressResponse(**ProgressResponse.model_validate(row).model_dump(), topic_name=name)
            for row, name in rows
        ]

    async def get_for_topic(self, user_id: str, topic_id: str) -> ProgressResponse:
        cache_key = user_progress_key(user_id, topic_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return ProgressResponse.model_validate(cached)

        row = await self.progress.get(user_id, topic_id)
        if row is None:
            raise NotFoundError("Progress not found")

        result = ProgressResponse.model_validate(row)
        await self.cache.set(cache_key, result.model_dump(mode="json"), USER_PROGRESS_CACHE_TTL)
        return result
