"""Grading and attempt numbering."""

from __future__ import annotations

from typing import Any, NamedTuple

import structlog

from learnloop.attempts.repository import AttemptNumberTaken, AttemptRepository
from learnloop.clock import Clock
from learnloop.db.models import Attempt
from learnloop.exceptions import SequenceConflictError
from learnloop.grading.grader import Verdict, grade
from learnloop.problems.schemas import ProblemRecord
from learnloop.problems.service import ProblemService

logger = structlog.get_logger()


class SequencedAttempt(NamedTuple):
    attempt: Attempt
    problem: ProblemRecord
    verdict: Verdict


class AttemptSequencer:
    """Grades a submission and persists it under the next attempt number.

    Numbers are ``max + 1`` for the (user, problem) pair. If another writer
    takes the same number first, the max is re-read and the insert retried.
    """

    def __init__(
        self,
        problems: ProblemService,
        attempts: AttemptRepository,
        clock: Clock,
        max_retries: int = 3,
    ) -> None:
        self.problems = problems
        self.attempts = attempts
        self.clock = clock
        self.max_retries = max_retries

    async def submit(
        self,
        user_id: str,
        problem_id: str,
        submitted_answer: Any,
        time_taken: int = 0,
    ) -> SequencedAttempt:
        problem = await self.problems.find_by_id(problem_id)
        verdict = grade(problem.type, problem.answer, submitted_answer)

        for try_number in range(1, self.max_retries + 1):
            attempt_number = await self.attempts.max_attempt_number(user_id, problem_id) + 1
            try:
                attempt = await self.attempts.create(
                    user_id=user_id,
                    problem_id=problem_id,
                    submitted_answer=submitted_answer,
                    is_correct=verdict.is_correct,
                    time_taken=time_taken,
                    attempt_number=attempt_number,
                    created_at=self.clock.now(),
                )
            except AttemptNumberTaken:
                logger.info(
                    "attempt_number_conflict",
                    user_id=user_id,
                    problem_id=problem_id,
                    attempt_number=attempt_number,
                    try_number=try_number,
                )
                continue

            logger.info(
                "attempt_submitted",
                attempt_id=attempt.id,
                user_id=user_id,
                problem_id=problem_id,
                verdict=verdict.value,
                attempt_number=attempt.attempt_number,
            )
            return SequencedAttempt(attempt, problem, verdict)

        raise SequenceConflictError(user_id, problem_id)
