"""Account stats and achievement persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnloop.db.models import AccountStats, AchievementDefinition, AchievementGrant, is_valid_id, new_id


class StatsRepository(Protocol):
    async def get(self, user_id: str) -> AccountStats | None: ...

    async def get_or_create(self, user_id: str, now: datetime) -> AccountStats: ...

    async def save(
        self,
        *,
        user_id: str,
        total_xp: int,
        level: int,
        current_streak: int,
        longest_streak: int,
        total_problems_solved: int,
        total_study_time: int,
        updated_at: datetime,
    ) -> AccountStats: ...


class AchievementRepository(Protocol):
    async def list_definitions(self) -> list[AchievementDefinition]: ...

    async def create_definition(
        self,
        *,
        name: str,
        description: str,
        icon_url: str | None,
        condition: dict[str, Any],
        xp_reward: int,
        now: datetime,
    ) -> AchievementDefinition | None: ...

    async def soft_delete_definition(self, achievement_id: str, now: datetime) -> bool: ...

    async def list_grants(self, user_id: str) -> list[AchievementGrant]: ...

    async def list_grants_with_definitions(
        self, user_id: str
    ) -> list[tuple[AchievementGrant, AchievementDefinition]]: ...

    async def create_grant(
        self, user_id: str, achievement_id: str, now: datetime
    ) -> AchievementGrant | None: ...


class SqlStatsRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, user_id: str) -> AccountStats | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountStats).where(
                    AccountStats.user_id == user_id,
                    AccountStats.deleted_at.is_(None),
                )
            )
            return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, now: datetime) -> AccountStats:
        """Return the user's stats row, inserting the zeroed default if missing."""
        existing = await self.get(user_id)
        if existing is not None:
            return existing
        stmt = (
            pg_insert(AccountStats)
            .values(id=new_id(), user_id=user_id, created_at=now, updated_at=now)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
            result = await session.execute(select(AccountStats).where(AccountStats.user_id == user_id))
            return result.scalar_one()

    async def save(
        self,
        *,
        user_id: str,
        total_xp: int,
        level: int,
        current_streak: int,
        longest_streak: int,
        total_problems_solved: int,
        total_study_time: int,
        updated_at: datetime,
    ) -> AccountStats:
        values = {
            "total_xp": total_xp,
            "level": level,
            "current_streak": current_streak,
            "longest_streak": longest_streak,
            "total_problems_solved": total_problems_solved,
            "total_study_time": total_study_time,
            "updated_at": updated_at,
        }
        stmt = pg_insert(AccountStats).values(id=new_id(), user_id=user_id, created_at=updated_at, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={**values, "deleted_at": None},
        ).returning(AccountStats)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            stats = result.scalar_one()
            await session.commit()
            return stats


class SqlAchievementRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_definitions(self) -> list[AchievementDefinition]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AchievementDefinition)
                .where(AchievementDefinition.deleted_at.is_(None))
                .order_by(AchievementDefinition.created_at.asc(), AchievementDefinition.id.asc())
            )
            return list(result.scalars().all())

    async def create_definition(
        self,
        *,
        name: str,
        description: str,
        icon_url: str | None,
        condition: dict[str, Any],
        xp_reward: int,
        now: datetime,
    ) -> AchievementDefinition | None:
        """Insert a definition. Returns None if the name is already taken."""
        definition = AchievementDefinition(
            id=new_id(),
            name=name,
            description=description,
            icon_url=icon_url,
            condition=condition,
            xp_reward=xp_reward,
            created_at=now,
        )
        async with self._session_factory() as session:
            session.add(definition)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return None
        return definition

    async def soft_delete_definition(self, achievement_id: str, now: datetime) -> bool:
        if not is_valid_id(achievement_id):
            return False
        async with self._session_factory() as session:
            result = await session.execute(
                update(AchievementDefinition)
                .where(
                    AchievementDefinition.id == achievement_id,
                    AchievementDefinition.deleted_at.is_(None),
                )
                .values(deleted_at=now)
            )
            await session.commit()
            return result.rowcount > 0

    async def list_grants(self, user_id: str) -> list[AchievementGrant]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AchievementGrant).where(
                    AchievementGrant.user_id == user_id,
                    AchievementGrant.deleted_at.is_(None),
                )
            )
            return list(result.scalars().all())

    async def list_grants_with_definitions(
        self, user_id: str
    ) -> list[tuple[AchievementGrant, AchievementDefinition]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AchievementGrant, AchievementDefinition)
                .join(AchievementDefinition, AchievementDefinition.id == AchievementGrant.achievement_id)
                .where(
                    AchievementGrant.user_id == user_id,
                    AchievementGrant.deleted_at.is_(None),
                )
                .order_by(AchievementGrant.earned_at.desc())
            )
            return [(grant, definition) for grant, definition in result.all()]

    async def create_grant(
        self, user_id: str, achievement_id: str, now: datetime
    ) -> AchievementGrant | None:
        """Insert a grant. Returns None when the user already holds it."""
        grant = AchievementGrant(id=new_id(), user_id=user_id, achievement_id=achievement_id, earned_at=now)
        async with self._session_factory() as session:
            session.add(grant)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return None  # Race condition: already granted
        return grant
