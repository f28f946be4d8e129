"""Account-wide XP, level, and daily streak."""

from __future__ import annotations

from zoneinfo import ZoneInfo

import structlog

from learnloop.cache.coordinator import Cache
from learnloop.cache.keys import USER_STATS_CACHE_TTL, user_stats_key
from learnloop.clock import Clock
from learnloop.gamification.level import level_for_xp
from learnloop.gamification.repository import StatsRepository
from learnloop.gamification.schemas import StatsResponse
from learnloop.gamification.streak import next_streak
from learnloop.grading.grader import Verdict

logger = structlog.get_logger()

XP_BY_VERDICT: dict[Verdict, int] = {
    Verdict.CORRECT: 10,
    Verdict.INCORRECT: 2,
    Verdict.UNGRADED: 0,
}


class AccountStatsAggregator:
    """Applies one attempt to the user's stats record."""

    def __init__(
        self,
        stats: StatsRepository,
        cache: Cache,
        clock: Clock,
        streak_timezone: str = "UTC",
    ) -> None:
        self.stats = stats
        self.cache = cache
        self.clock = clock
        self.tz = ZoneInfo(streak_timezone)

    async def update(self, user_id: str, verdict: Verdict, time_taken: int) -> StatsResponse:
        now = self.clock.now()
        stats = await self.stats.get_or_create(user_id, now)

        xp_gain = XP_BY_VERDICT[verdict]
        total_xp = stats.total_xp + xp_gain
        current_streak = next_streak(
            stats.current_streak,
            stats.updated_at,
            now,
            self.tz,
            first_activity=stats.total_problems_solved == 0,
        )

        saved = await self.stats.save(
            user_id=user_id,
            total_xp=total_xp,
            level=level_for_xp(total_xp),
            current_streak=current_streak,
            longest_streak=max(stats.longest_streak, current_streak),
            total_problems_solved=stats.total_problems_solved + 1,
            total_study_time=stats.total_study_time + time_taken,
            updated_at=now,
        )
        await self.cache.delete(user_stats_key(user_id))

        logger.info(
            "stats_updated",
            user_id=user_id,
            xp_gain=xp_gain,
            level=saved.level,
            streak=saved.current_streak,
        )
        return StatsResponse.model_validate(saved)


class StatsService:
    def __init__(self, stats: StatsRepository, cache: Cache, clock: Clock) -> None:
        self.stats = stats
        self.cache = cache
        self.clock = clock

    async def get_stats(self, user_id: str) -> StatsResponse:
        """Cached stats; a user without a record gets the zeroed default created."""
        cache_key = user_stats_key(user_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return StatsResponse.model_validate(cached)

        stats = StatsResponse.model_validate(await self.stats.get_or_create(user_id, self.clock.now()))
        await self.cache.set(cache_key, stats.model_dump(mode="json"), USER_STATS_CACHE_TTL)
        return stats
