"""Problem snapshots passed between the cache and the pipeline."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ProblemRecord(BaseModel):
    """Problem as the pipeline sees it, including the canonical answer."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    topic_id: str
    type: str
    difficulty: int
    answer: Any
    solve_count: int
    correct_rate: float
