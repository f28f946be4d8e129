"""In-memory stand-ins for the repositories and the cache.

They follow the SQL repositories' contracts, including returning detached
copies so that a caller holding a row never sees later writes through it.
"""

from __future__ import annotations

import fnmatch
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from learnloop.attempts.repository import AttemptNumberTaken
from learnloop.clock import Clock
from learnloop.db.models import (
    AccountStats,
    AchievementDefinition,
    AchievementGrant,
    Attempt,
    Problem,
    Progress,
    Topic,
    new_id,
)

M = TypeVar("M")


def detached(row: M) -> M:
    """Fresh instance with the same column values."""
    columns = row.__table__.columns  # type: ignore[attr-defined]
    return type(row)(**{c.key: getattr(row, c.key) for c in columns})


class FakeCache:
    """Dict-backed cache that JSON-encodes like CacheCoordinator."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.deleted: list[str] = []

    async def get(self, key: str) -> Any | None:
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.data[key] = json.dumps(value, default=str)
        self.ttls[key] = ttl_seconds

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self.deleted.append(key)
            self.data.pop(key, None)

    async def keys_matching(self, pattern: str) -> list[str]:
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]


class InMemoryDatabase:
    """Table storage shared by the fake repositories."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self.topics: dict[str, Topic] = {}
        self.problems: dict[str, Problem] = {}
        self.attempts: list[Attempt] = []
        self.progress: dict[tuple[str, str], Progress] = {}
        self.stats: dict[str, AccountStats] = {}
        self.definitions: dict[str, AchievementDefinition] = {}
        self.grants: dict[tuple[str, str], AchievementGrant] = {}

    def add_topic(self, name: str = "Fractions", topic_id: str | None = None, deleted: bool = False) -> Topic:
        topic = Topic(
            id=topic_id or new_id(),
            name=name,
            created_at=self.clock.now(),
            deleted_at=self.clock.now() if deleted else None,
        )
        self.topics[topic.id] = topic
        return topic

    def add_problem(
        self,
        topic_id: str,
        answer: Any,
        type: str = "multiple_choice",
        problem_id: str | None = None,
        deleted: bool = False,
    ) -> Problem:
        now = self.clock.now()
        problem = Problem(
            id=problem_id or new_id(),
            topic_id=topic_id,
            content="",
            type=type,
            difficulty=1,
            answer=answer,
            solve_count=0,
            correct_rate=0.0,
            created_at=now,
            updated_at=now,
            deleted_at=now if deleted else None,
        )
        self.problems[problem.id] = problem
        return problem

    def add_definition(
        self,
        name: str,
        condition: dict[str, Any],
        xp_reward: int = 0,
        created_at: datetime | None = None,
    ) -> AchievementDefinition:
        definition = AchievementDefinition(
            id=new_id(),
            name=name,
            description=name,
            icon_url=None,
            condition=condition,
            xp_reward=xp_reward,
            created_at=created_at or self.clock.now(),
            deleted_at=None,
        )
        self.definitions[definition.id] = definition
        return definition

    def add_attempt(self, user_id: str, problem: Problem, number: int, is_correct: bool | None) -> Attempt:
        attempt = Attempt(
            id=new_id(),
            user_id=user_id,
            problem_id=problem.id,
            submitted_answer=None,
            is_correct=is_correct,
            time_taken=0,
            attempt_number=number,
            created_at=self.clock.now(),
            deleted_at=None,
        )
        self.attempts.append(attempt)
        return attempt

    def set_stats(self, user_id: str, **values: Any) -> AccountStats:
        now = self.clock.now()
        row = AccountStats(
            id=new_id(),
            user_id=user_id,
            total_xp=0,
            level=1,
            current_streak=0,
            longest_streak=0,
            total_problems_solved=0,
            total_study_time=0,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        for key, value in values.items():
            setattr(row, key, value)
        self.stats[user_id] = row
        return row


class FakeProblemRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db
        self.lookups = 0

    async def find_by_id(self, problem_id: str) -> Problem | None:
        self.lookups += 1
        problem = self.db.problems.get(problem_id)
        if problem is None or problem.deleted_at is not None:
            return None
        return detached(problem)

    async def update_stats(self, problem_id: str, solve_count: int, correct_rate: float, now: datetime) -> None:
        problem = self.db.problems[problem_id]
        problem.solve_count = solve_count
        problem.correct_rate = correct_rate
        problem.updated_at = now


class FakeAttemptRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db
        # Number of upcoming inserts that lose to a simulated concurrent writer.
        self.lost_races = 0

    async def max_attempt_number(self, user_id: str, problem_id: str) -> int:
        numbers = [
            a.attempt_number for a in self.db.attempts if a.user_id == user_id and a.problem_id == problem_id
        ]
        return max(numbers, default=0)

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
        if self.lost_races > 0:
            self.lost_races -= 1
            self._insert(user_id, problem_id, None, None, 0, attempt_number, created_at)
            raise AttemptNumberTaken(attempt_number)
        if any(
            a.user_id == user_id and a.problem_id == problem_id and a.attempt_number == attempt_number
            for a in self.db.attempts
        ):
            raise AttemptNumberTaken(attempt_number)
        return detached(
            self._insert(user_id, problem_id, submitted_answer, is_correct, time_taken, attempt_number, created_at)
        )

    def _insert(
        self,
        user_id: str,
        problem_id: str,
        submitted_answer: Any,
        is_correct: bool | None,
        time_taken: int,
        attempt_number: int,
        created_at: datetime,
    ) -> Attempt:
        attempt = Attempt(
            id=new_id(),
            user_id=user_id,
            problem_id=problem_id,
            submitted_answer=submitted_answer,
            is_correct=is_correct,
            time_taken=time_taken,
            attempt_number=attempt_number,
            created_at=created_at,
            deleted_at=None,
        )
        self.db.attempts.append(attempt)
        return attempt

    def _live(self) -> list[Attempt]:
        return [a for a in self.db.attempts if a.deleted_at is None]

    async def count_for_problem(self, problem_id: str) -> int:
        return sum(1 for a in self._live() if a.problem_id == problem_id)

    async def count_correct_for_problem(self, problem_id: str) -> int:
        return sum(1 for a in self._live() if a.problem_id == problem_id and a.is_correct is True)

    async def graded_counts_for_topic(self, user_id: str, topic_id: str) -> tuple[int, int]:
        graded = [
            a
            for a in self._live()
            if a.user_id == user_id
            and a.is_correct is not None
            and self.db.problems[a.problem_id].topic_id == topic_id
        ]
        return len(graded), sum(1 for a in graded if a.is_correct)

    async def list_for_user(self, user_id: str, offset: int, limit: int) -> tuple[list[Attempt], int]:
        mine = sorted(
            (a for a in self._live() if a.user_id == user_id),
            key=lambda a: (a.created_at, a.attempt_number),
            reverse=True,
        )
        return [detached(a) for a in mine[offset : offset + limit]], len(mine)

    async def list_for_user_problem(self, user_id: str, problem_id: str) -> list[Attempt]:
        mine = [a for a in self._live() if a.user_id == user_id and a.problem_id == problem_id]
        return [detached(a) for a in sorted(mine, key=lambda a: a.attempt_number)]


class FakeProgressRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def get(self, user_id: str, topic_id: str) -> Progress | None:
        row = self.db.progress.get((user_id, topic_id))
        if row is None or row.deleted_at is not None:
            return None
        return detached(row)

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
        row = self.db.progress.get((user_id, topic_id))
        if row is None:
            row = Progress(id=new_id(), user_id=user_id, topic_id=topic_id, created_at=now)
            self.db.progress[(user_id, topic_id)] = row
        row.problems_solved = problems_solved
        row.correct_count = correct_count
        row.mastery_level = mastery_level
        row.updated_at = now
        row.deleted_at = None
        return detached(row)

    async def list_for_user(self, user_id: str) -> list[tuple[Progress, str]]:
        rows = [
            (row, self.db.topics[row.topic_id])
            for (owner, _), row in self.db.progress.items()
            if owner == user_id and row.deleted_at is None
        ]
        rows = [(row, topic) for row, topic in rows if topic.deleted_at is None]
        rows.sort(key=lambda pair: pair[0].updated_at, reverse=True)
        return [(detached(row), topic.name) for row, topic in rows]


class FakeStatsRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db
        self.saves = 0

    async def get(self, user_id: str) -> AccountStats | None:
        row = self.db.stats.get(user_id)
        return detached(row) if row is not None else None

    async def get_or_create(self, user_id: str, now: datetime) -> AccountStats:
        if user_id not in self.db.stats:
            self.db.set_stats(user_id, created_at=now, updated_at=now)
        return detached(self.db.stats[user_id])

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
        self.saves += 1
        if user_id not in self.db.stats:
            self.db.set_stats(user_id, created_at=updated_at)
        row = self.db.stats[user_id]
        row.total_xp = total_xp
        row.level = level
        row.current_streak = current_streak
        row.longest_streak = longest_streak
        row.total_problems_solved = total_problems_solved
        row.total_study_time = total_study_time
        row.updated_at = updated_at
        return detached(row)


class FakeAchievementRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db
        # Achievement ids whose next grant loses to a simulated concurrent writer.
        self.lost_grant_races: set[str] = set()

    async def list_definitions(self) -> list[AchievementDefinition]:
        live = [d for d in self.db.definitions.values() if d.deleted_at is None]
        return [detached(d) for d in sorted(live, key=lambda d: (d.created_at, d.id))]

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
        # Names stay reserved after a soft delete, as with the SQL unique constraint.
        if any(d.name == name for d in self.db.definitions.values()):
            return None
        definition = self.db.add_definition(name, condition, xp_reward=xp_reward, created_at=now)
        definition.description = description
        definition.icon_url = icon_url
        return detached(definition)

    async def soft_delete_definition(self, achievement_id: str, now: datetime) -> bool:
        definition = self.db.definitions.get(achievement_id)
        if definition is None or definition.deleted_at is not None:
            return False
        definition.deleted_at = now
        return True

    async def list_grants(self, user_id: str) -> list[AchievementGrant]:
        return [detached(g) for (owner, _), g in self.db.grants.items() if owner == user_id and g.deleted_at is None]

    async def list_grants_with_definitions(
        self, user_id: str
    ) -> list[tuple[AchievementGrant, AchievementDefinition]]:
        grants = sorted(
            (g for (owner, _), g in self.db.grants.items() if owner == user_id and g.deleted_at is None),
            key=lambda g: g.earned_at,
            reverse=True,
        )
        return [(detached(g), detached(self.db.definitions[g.achievement_id])) for g in grants]

    async def create_grant(self, user_id: str, achievement_id: str, now: datetime) -> AchievementGrant | None:
        key = (user_id, achievement_id)
        if achievement_id in self.lost_grant_races:
            self.lost_grant_races.discard(achievement_id)
            self._insert(user_id, achievement_id, now)
            return None
        if key in self.db.grants:
            return None
        return detached(self._insert(user_id, achievement_id, now))

    def _insert(self, user_id: str, achievement_id: str, now: datetime) -> AchievementGrant:
        grant = AchievementGrant(
            id=new_id(), user_id=user_id, achievement_id=achievement_id, earned_at=now, deleted_at=None
        )
        self.db.grants[(user_id, achievement_id)] = grant
        return grant


@dataclass
class FakeRepositories:
    db: InMemoryDatabase
    problems: FakeProblemRepository = field(init=False)
    attempts: FakeAttemptRepository = field(init=False)
    progress: FakeProgressRepository = field(init=False)
    stats: FakeStatsRepository = field(init=False)
    achievements: FakeAchievementRepository = field(init=False)

    def __post_init__(self) -> None:
        self.problems = FakeProblemRepository(self.db)
        self.attempts = FakeAttemptRepository(self.db)
        self.progress = FakeProgressRepository(self.db)
        self.stats = FakeStatsRepository(self.db)
        self.achievements = FakeAchievementRepository(self.db)

    def as_kwargs(self) -> dict[str, Any]:
        return {
            "problems": self.problems,
            "attempts": self.attempts,
            "progress": self.progress,
            "stats": self.stats,
            "achievements": self.achievements,
        }
