"""Attempt endpoints: submit and history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from learnloop.attempts.pipeline import SubmissionPipeline
from learnloop.attempts.schemas import AttemptResponse, SubmitAttemptRequest
from learnloop.attempts.service import AttemptHistoryService
from learnloop.auth.dependencies import get_current_user_id
from learnloop.dependencies import get_attempt_history, get_pipeline
from learnloop.schemas import ApiResponse, PagedResponse

router = APIRouter(prefix="/api/v1/attempts", tags=["Attempts"])


@router.post("", response_model=ApiResponse[AttemptResponse], status_code=status.HTTP_201_CREATED)
async def submit_attempt(
    body: SubmitAttemptRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: SubmissionPipeline = Depends(get_pipeline),
):
    """Grade and record an answer; updates stats, progress, and achievements."""
    attempt = await pipeline.submit_attempt(user_id, body.problem_id, body.submitted_answer, body.time_taken)
    return ApiResponse(data=AttemptResponse.model_validate(attempt))


@router.get("/me", response_model=PagedResponse[AttemptResponse])
async def list_my_attempts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    history: AttemptHistoryService = Depends(get_attempt_history),
):
    items, meta = await history.list_mine(user_id, page=page, limit=limit)
    return PagedResponse(data=items, meta=meta)


@router.get("/me/problems/{problem_id}", response_model=ApiResponse[list[AttemptResponse]])
async def list_my_problem_attempts(
    problem_id: str,
    user_id: str = Depends(get_current_user_id),
    history: AttemptHistoryService = Depends(get_attempt_history),
):
    """Own attempts on one problem, by attempt number."""
    return ApiResponse(data=await history.list_for_problem(user_id, problem_id))
