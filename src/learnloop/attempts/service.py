"""Attempt history reads."""

from __future__ import annotations

from learnloop.attempts.repository import AttemptRepository
from learnloop.attempts.schemas import AttemptResponse
from learnloop.schemas import PageMeta


class AttemptHistoryService:
    def __init__(self, attempts: AttemptRepository) -> None:
        self.attempts = attempts

    async def list_mine(self, user_id: str, page: int = 1, limit: int = 20) -> tuple[list[AttemptResponse], PageMeta]:
        """Newest first."""
        items, total = await self.attempts.list_for_user(user_id, offset=(page - 1) * limit, limit=limit)
        return [AttemptResponse.model_validate(a) for a in items], PageMeta.build(page, limit, total)

    async def list_for_problem(self, user_id: str, problem_id: str) -> list[AttemptResponse]:
        attempts = await self.attempts.list_for_user_problem(user_id, problem_id)
        return [AttemptResponse.model_validate(a) for a in attempts]
