"""Achievement definitions, grants, and post-submission evaluation."""

from __future__ import annotations

import asyncio
from typing import Any

import pydantic
import structlog

from learnloop.cache.coordinator import Cache
from learnloop.cache.keys import USER_ACHIEVEMENTS_CACHE_TTL, user_achievements_key, user_stats_key
from learnloop.clock import Clock
from learnloop.db.models import AchievementDefinition, AchievementGrant
from learnloop.exceptions import ConflictError, NotFoundError, ValidationError
from learnloop.gamification.conditions import AchievementCondition
from learnloop.gamification.level import level_for_xp
from learnloop.gamification.repository import AchievementRepository, StatsRepository
from learnloop.gamification.schemas import AchievementResponse, EarnedAchievementResponse

logger = structlog.get_logger()


def parse_condition(raw: Any) -> AchievementCondition:
    """Parse condition JSON, raising the domain ValidationError on bad input."""
    try:
        return AchievementCondition.model_validate(raw if raw is not None else {})
    except pydantic.ValidationError as exc:
        msg = f"Invalid achievement condition: {exc.errors()[0]['msg']}"
        raise ValidationError(msg) from exc


class AchievementEvaluator:
    """Grants every achievement whose condition the user's stats now meet.

    Runs once per submission, after the stats update. Conditions are checked
    against one stats snapshot taken at the start of the run; reward XP is
    applied on top of whatever the store holds at grant time.
    """

    def __init__(
        self,
        achievements: AchievementRepository,
        stats: StatsRepository,
        cache: Cache,
        clock: Clock,
    ) -> None:
        self.achievements = achievements
        self.stats = stats
        self.cache = cache
        self.clock = clock

    async def evaluate(self, user_id: str) -> list[AchievementGrant]:
        definitions, grants = await asyncio.gather(
            self.achievements.list_definitions(),
            self.achievements.list_grants(user_id),
        )
        snapshot = await self.stats.get_or_create(user_id, self.clock.now())
        earned_ids = {grant.achievement_id for grant in grants}

        new_grants: list[AchievementGrant] = []
        for definition in definitions:
            if definition.id in earned_ids:
                continue
            try:
                condition = parse_condition(definition.condition)
            except ValidationError:
                logger.warning(
                    "achievement_condition_invalid",
                    achievement_id=definition.id,
                    name=definition.name,
                    condition=definition.condition,
                )
                continue
            if not condition.is_met(snapshot):
                continue

            grant = await self._grant(user_id, definition)
            if grant is not None:
                new_grants.append(grant)

        return new_grants

    async def _grant(self, user_id: str, definition: AchievementDefinition) -> AchievementGrant | None:
        now = self.clock.now()
        grant = await self.achievements.create_grant(user_id, definition.id, now)
        if grant is None:
            logger.info("achievement_already_granted", user_id=user_id, achievement_id=definition.id)
            return None

        if definition.xp_reward > 0:
            current = await self.stats.get_or_create(user_id, now)
            total_xp = current.total_xp + definition.xp_reward
            await self.stats.save(
                user_id=user_id,
                total_xp=total_xp,
                level=level_for_xp(total_xp),
                current_streak=current.current_streak,
                longest_streak=current.longest_streak,
                total_problems_solved=current.total_problems_solved,
                total_study_time=current.total_study_time,
                updated_at=now,
            )

        await self.cache.delete(user_achievements_key(user_id), user_stats_key(user_id))
        logger.info(
            "achievement_earned",
            user_id=user_id,
            achievement_id=definition.id,
            name=definition.name,
            xp_reward=definition.xp_reward,
        )
        return grant


class AchievementService:
    """Managed achievement configuration plus per-user listings."""

    def __init__(self, achievements: AchievementRepository, cache: Cache, clock: Clock) -> None:
        self.achievements = achievements
        self.cache = cache
        self.clock = clock

    async def create(
        self,
        *,
        name: str,
        description: str,
        icon_url: str | None = None,
        condition: dict[str, Any] | None = None,
        xp_reward: int = 0,
    ) -> AchievementResponse:
        if xp_reward < 0:
            raise ValidationError("xp_reward must be zero or positive")
        parsed = parse_condition(condition)

        definition = await self.achievements.create_definition(
            name=name,
            description=description,
            icon_url=icon_url,
            condition=parsed.to_storage(),
            xp_reward=xp_reward,
            now=self.clock.now(),
        )
        if definition is None:
            raise ConflictError(f"Achievement '{name}' already exists")

        logger.info("achievement_created", achievement_id=definition.id, name=name)
        return AchievementResponse.model_validate(definition)

    async def list_all(self) -> list[AchievementResponse]:
        return [AchievementResponse.model_validate(d) for d in await self.achievements.list_definitions()]

    async def delete(self, achievement_id: str) -> None:
        """Soft delete. Existing grants are kept."""
        if not await self.achievements.soft_delete_definition(achievement_id, self.clock.now()):
            raise NotFoundError("Achievement not found")
        logger.info("achievement_deleted", achievement_id=achievement_id)

    async def list_for_user(self, user_id: str) -> list[EarnedAchievementResponse]:
        cache_key = user_achievements_key(user_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return [EarnedAchievementResponse.model_validate(item) for item in cached]

        rows = await self.achievements.list_grants_with_definitions(user_id)
        earned = [
            EarnedAchievementResponse(
                id=grant.id,
                achievement_id=grant.achievement_id,
                earned_at=grant.earned_at,
                achievement=AchievementResponse.model_validate(definition),
            )
            for grant, definition in rows
        ]
        await self.cache.set(cache_key, [e.model_dump(mode="json") for e in earned], USER_ACHIEVEMENTS_CACHE_TTL)
        return earned
