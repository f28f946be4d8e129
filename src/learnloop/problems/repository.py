"""Problem lookup and stats persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnloop.db.models import Problem, is_valid_id


class ProblemRepository(Protocol):
    async def find_by_id(self, problem_id: str) -> Problem | None: ...

    async def update_stats(
        self, problem_id: str, solve_count: int, correct_rate: float, now: datetime
    ) -> None: ...


class SqlProblemRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_id(self, problem_id: str) -> Problem | None:
        if not is_valid_id(problem_id):
            return None
        async with self._session_factory() as session:
            result = await session.execute(
                select(Problem).where(Problem.id == problem_id, Problem.deleted_at.is_(None))
            )
            return result.scalar_one_or_none()

    async def update_stats(
        self, problem_id: str, solve_count: int, correct_rate: float, now: datetime
    ) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Problem)
                .where(Problem.id == problem_id)
                .values(solve_count=solve_count, correct_rate=correct_rate, updated_at=now)
            )
            await session.commit()
