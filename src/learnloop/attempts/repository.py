"""Attempt persistence.

Attempts are append-only. The (user_id, problem_id, attempt_number) unique
constraint is what finally guarantees contiguous numbering; callers see a
violation as AttemptNumberTaken and retry with a fresh max.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnloop.db.models import Attempt, Problem, is_valid_id

ATTEMPT_NUMBER_CONSTRAINT = "user_problem_attempts_user_problem_number_key"


class AttemptNumberTaken(Exception):
    """Another writer inserted the same attempt number first."""


class AttemptRepository(Protocol):
    async def max_attempt_number(self, user_id: str, problem_id: str) -> int: ...

    async def create(
        self,
        *,
        user_id: str,
        problem_id: str,
        submitted_answer: Any,
        is_correct: bool | None,
        time_taken: int,
        attempt_number: int,
        created_at: datetime,
    ) -> Attempt: ...

    async def count_for_problem(self, problem_id: str) -> int: ...

    async def count_correct_for_problem(self, problem_id: str) -> int: ...

    async def graded_counts_for_topic(self, user_id: str, topic_id: str) -> tuple[int, int]: ...

    async def list_for_user(self, user_id: str, offset: int, limit: int) -> tuple[list[Attempt], int]: ...

    async def list_for_user_problem(self, user_id: str, problem_id: str) -> list[Attempt]: ...


class SqlAttemptRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def max_attempt_number(self, user_id: str, problem_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.coalesce(func.max(Attempt.attempt_number), 0)).where(
                    Attempt.user_id == user_id,
                    Attempt.problem_id == problem_id,
                )
            )
            return int(result.scalar_one())

    async def create(
        self,
        *,
        user_id: str,
        problem_id: str,
        submitted_answer: Any,
        is_correct: bool | None,
        time_taken: int,
        attempt_number: int,
        created_at: datetime,
    ) -> Attempt:
        attempt = Attempt(
            user_id=user_id,
            problem_id=problem_id,
            submitted_answer=submitted_answer,
            is_correct=is_correct,
            time_taken=time_taken,
            attempt_number=attempt_number,
            created_at=created_at,
        )
        async with self._session_factory() as session:
            session.add(attempt)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if ATTEMPT_NUMBER_CONSTRAINT in str(exc.orig):
                    raise AttemptNumberTaken(attempt_number) from exc
                raise
        return attempt

    async def count_for_problem(self, problem_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(Attempt.id)).where(
                    Attempt.problem_id == problem_id,
                    Attempt.deleted_at.is_(None),
                )
            )
            return int(result.scalar_one())

    async def count_correct_for_problem(self, problem_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(Attempt.id)).where(
                    Attempt.problem_id == problem_id,
                    Attempt.is_correct.is_(True),
                    Attempt.deleted_at.is_(None),
                )
            )
            return int(result.scalar_one())

    async def graded_counts_for_topic(self, user_id: str, topic_id: str) -> tuple[int, int]:
        """(graded attempts, correct attempts) for a user within one topic."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    func.count(Attempt.id),
                    func.count(Attempt.id).filter(Attempt.is_correct.is_(True)),
                )
                .join(Problem, Problem.id == Attempt.problem_id)
                .where(
                    Attempt.user_id == user_id,
                    Attempt.is_correct.is_not(None),
                    Attempt.deleted_at.is_(None),
                    Problem.topic_id == topic_id,
                )
            )
            graded, correct = result.one()
            return int(graded), int(correct)

    async def list_for_user(self, user_id: str, offset: int, limit: int) -> tuple[list[Attempt], int]:
        async with self._session_factory() as session:
            where = (Attempt.user_id == user_id, Attempt.deleted_at.is_(None))
            total = (await session.execute(select(func.count(Attempt.id)).where(*where))).scalar_one()
            result = await session.execute(
                select(Attempt)
                .where(*where)
                .order_by(Attempt.created_at.desc(), Attempt.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), int(total)

    async def list_for_user_problem(self, user_id: str, problem_id: str) -> list[Attempt]:
        if not is_valid_id(problem_id):
            return []
        async with self._session_factory() as session:
            result = await session.execute(
                select(Attempt)
                .where(
                    Attempt.user_id == user_id,
                    Attempt.problem_id == problem_id,
                    Attempt.deleted_at.is_(None),
                )
                .order_by(Attempt.attempt_number.asc())
            )
            return list(result.scalars().all())
