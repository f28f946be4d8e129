"""Progress endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from learnloop.auth.dependencies import get_current_user_id
from learnloop.dependencies import get_progress_service
from learnloop.progress.schemas import ProgressResponse, TopicProgressResponse
from learnloop.progress.service import ProgressQueryService
from learnloop.schemas import ApiResponse

router = APIRouter(prefix="/api/v1/progress", tags=["Progress"])


@router.get("/me", response_model=ApiResponse[list[TopicProgressResponse]])
async def list_my_progress(
    user_id: str = Depends(get_current_user_id),
    service: ProgressQueryService = Depends(get_progress_service),
):
    return ApiResponse(data=await service.list_mine(user_id))


@router.get("/me/topics/{topic_id}", response_model=ApiResponse[ProgressResponse])
async def get_my_topic_progress(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressQueryService = Depends(get_progress_service),
):
    """404 until the user has a graded attempt in the topic."""
    return ApiResponse(data=await service.get_for_topic(user_id, topic_id))
