"""Achievement conditions.

A condition is a conjunction of optional minimum thresholds over the
account stats. Stored JSON comes in a few shapes:

    {"total_problems_solved": 10, "level": 2}      # threshold keys
    {"totalProblemsSolved": 10}                    # camelCase threshold keys
    {"type": "streak", "days": 3}                  # tagged single rule

All of them parse into the same AchievementCondition. An empty condition
is always met.
"""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StatsSnapshot(Protocol):
    total_problems_solved: int
    current_streak: int
    level: int
    total_xp: int


# rule type -> (amount key, threshold field)
TAGGED_RULES: dict[str, tuple[str, str]] = {
    "problems_solved": ("count", "min_problems_solved"),
    "streak": ("days", "min_streak"),
    "level": ("level", "min_level"),
    "xp": ("amount", "min_xp"),
}

THRESHOLD_KEYS: dict[str, str] = {
    "total_problems_solved": "min_problems_solved",
    "totalProblemsSolved": "min_problems_solved",
    "current_streak": "min_streak",
    "currentStreak": "min_streak",
    "level": "min_level",
    "total_xp": "min_xp",
    "totalXp": "min_xp",
}


class AchievementCondition(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    min_problems_solved: int | None = Field(default=None, ge=0)
    min_streak: int | None = Field(default=None, ge=0)
    min_level: int | None = Field(default=None, ge=0)
    min_xp: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if "type" in data:
            rule = data["type"]
            if rule not in TAGGED_RULES:
                raise ValueError(f"unknown condition type: {rule!r}")
            amount_key, field = TAGGED_RULES[rule]
            extra = set(data) - {"type", amount_key}
            if extra or amount_key not in data:
                raise ValueError(f"condition type {rule!r} takes exactly one key: {amount_key!r}")
            return {field: data[amount_key]}
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            field = THRESHOLD_KEYS.get(key, key)
            if field in normalized:
                raise ValueError(f"duplicate threshold: {key!r}")
            normalized[field] = value
        return normalized

    def is_met(self, stats: StatsSnapshot) -> bool:
        checks = (
            (self.min_problems_solved, stats.total_problems_solved),
            (self.min_streak, stats.current_streak),
            (self.min_level, stats.level),
            (self.min_xp, stats.total_xp),
        )
        return all(threshold is None or actual >= threshold for threshold, actual in checks)

    def to_storage(self) -> dict[str, int]:
        """Canonical threshold-key form written to the database."""
        stored = {
            "total_problems_solved": self.min_problems_solved,
            "current_streak": self.min_streak,
            "level": self.min_level,
            "total_xp": self.min_xp,
        }
        return {key: value for key, value in stored.items() if value is not None}
