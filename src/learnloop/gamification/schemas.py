"""Pydantic models for stats and achievement endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from learnloop.gamification.level import compute_level


# --- Stats ---


class StatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    total_xp: int
    level: int
    current_streak: int
    longest_streak: int
    total_problems_solved: int
    total_study_time: int
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def xp_into_level(self) -> int:
        return compute_level(self.total_xp)["xp_into_level"]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def xp_for_level(self) -> int:
        return compute_level(self.total_xp)["xp_for_level"]


# --- Achievements ---


class CreateAchievementRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str = Field(min_length=1)
    icon_url: str | None = Field(default=None, max_length=512)
    condition: dict[str, Any] = {}
    xp_reward: int = 0


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    icon_url: str | None = None
    condition: dict[str, Any]
    xp_reward: int
    created_at: datetime


class EarnedAchievementResponse(BaseModel):
    id: str
    achievement_id: str
    earned_at: datetime
    achievement: AchievementResponse
