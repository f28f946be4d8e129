"""Request/response models for attempt endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from learnloop.grading.grader import Verdict


class SubmitAttemptRequest(BaseModel):
    problem_id: str = Field(min_length=1)
    submitted_answer: Any
    time_taken: int = Field(default=0, ge=0, description="Seconds spent on the problem")

    @field_validator("submitted_answer")
    @classmethod
    def answer_not_empty(cls, v: Any) -> Any:
        if v is None or v == "":
            raise ValueError("submitted_answer must not be empty")
        return v


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    problem_id: str
    submitted_answer: Any
    is_correct: bool | None
    time_taken: int
    attempt_number: int
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def verdict(self) -> Verdict:
        return Verdict.from_is_correct(self.is_correct)
