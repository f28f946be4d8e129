"""Default achievement definitions, seeded on startup."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnloop.db.models import AchievementDefinition, new_id
from learnloop.gamification.conditions import AchievementCondition

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "name": "First Steps",
        "description": "Solve your very first problem",
        "condition": {"type": "problems_solved", "count": 1},
        "xp_reward": 10,
    },
    {
        "name": "Practice Makes Progress",
        "description": "Solve 10 problems",
        "condition": {"type": "problems_solved", "count": 10},
        "xp_reward": 50,
    },
    {
        "name": "Three in a Row",
        "description": "Study three days in a row",
        "condition": {"type": "streak", "days": 3},
        "xp_reward": 30,
    },
    {
        "name": "Level Up",
        "description": "Reach level 2",
        "condition": {"type": "level", "level": 2},
        "xp_reward": 20,
    },
]


async def seed_achievements(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Insert missing default achievements. Returns the number inserted.

    Existing rows (matched by name) are left alone, including soft-deleted
    ones, so operator edits survive restarts. Rows get increasing created_at
    values so evaluation follows the order listed here.
    """
    inserted = 0
    base = datetime.now(timezone.utc)
    async with session_factory() as session:
        for index, data in enumerate(ACHIEVEMENT_SEED_DATA):
            condition = AchievementCondition.model_validate(data["condition"]).to_storage()
            stmt = (
                pg_insert(AchievementDefinition)
                .values(
                    id=new_id(),
                    created_at=base + timedelta(milliseconds=index),
                    **{**data, "condition": condition},
                )
                .on_conflict_do_nothing(index_elements=["name"])
            )
            result = await session.execute(stmt)
            inserted += result.rowcount
        await session.commit()

    logger.info("Seeded %d achievement definitions", inserted)
    return inserted
