"""Per-(user, topic) progress persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnloop.db.models import Progress, Topic, is_valid_id, new_id


class ProgressRepository(Protocol):
    async def get(self, user_id: str, topic_id: str) -> Progress | None: ...

    async def upsert(
        self,
        *,
        user_id: str,
        topic_id: str,
        problems_solved: int,
        correct_count: int,
        mastery_level: float,
        now: datetime,
    ) -> Progress: ...

    async def list_for_user(self, user_id: str) -> list[tuple[Progress, str]]: ...


class SqlProgressRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, user_id: str, topic_id: str) -> Progress | None:
        if not is_valid_id(topic_id):
            return None
        async with self._session_factory() as session:
            result = await session.execute(
                select(Progress).where(
                    Progress.user_id == user_id,
                    Progress.topic_id == topic_id,
                    Progress.deleted_at.is_(None),
                )
            )
            return result.scalar_one_or_none()

    async def upsert(
        self,
        *,
        user_id: str,
        topic_id: str,
        problems_solved: int,
        correct_count: int,
        mastery_level: float,
        now: datetime,
    ) -> Progress:
        stmt = pg_insert(Progress).values(
            id=new_id(),
            user_id=user_id,
            topic_id=topic_id,
            problems_solved=problems_solved,
            correct_count=correct_count,
            mastery_level=mastery_level,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="user_progress_user_id_topic_id_key",
            set_={
                "problems_solved": stmt.excluded.problems_solved,
                "correct_count": stmt.excluded.correct_count,
                "mastery_level": stmt.excluded.mastery_level,
                "updated_at": stmt.excluded.updated_at,
                "deleted_at": None,
            },
        ).returning(Progress)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            progress = result.scalar_one()
            await session.commit()
            return progress

    async def list_for_user(self, user_id: str) -> list[tuple[Progress, str]]:
        """Progress rows joined with their topic name, most recently touched first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Progress, Topic.name)
                .join(Topic, Topic.id == Progress.topic_id)
                .where(
                    Progress.user_id == user_id,
                    Progress.deleted_at.is_(None),
                    Topic.deleted_at.is_(None),
                )
                .order_by(Progress.updated_at.desc())
            )
            return [(progress, name) for progress, name in result.all()]
