"""Response models for progress endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    topic_id: str
    problems_solved: int
    correct_count: int
    mastery_level: float
    created_at: datetime
    updated_at: datetime


class TopicProgressResponse(ProgressResponse):
    topic_name: str
