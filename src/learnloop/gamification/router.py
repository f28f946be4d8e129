"""Achievement and stats endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from learnloop.auth.dependencies import get_current_user_id
from learnloop.dependencies import get_achievement_service, get_stats_service
from learnloop.gamification.achievement_service import AchievementService
from learnloop.gamification.schemas import (
    AchievementResponse,
    CreateAchievementRequest,
    EarnedAchievementResponse,
    StatsResponse,
)
from learnloop.gamification.stats_service import StatsService
from learnloop.schemas import ApiResponse

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Achievement definitions ──


@router.get("/achievements", response_model=ApiResponse[list[AchievementResponse]])
async def list_achievements(service: AchievementService = Depends(get_achievement_service)):
    """All active achievement definitions (public)."""
    return ApiResponse(data=await service.list_all())


@router.post("/achievements", response_model=ApiResponse[AchievementResponse], status_code=status.HTTP_201_CREATED)
async def create_achievement(
    body: CreateAchievementRequest,
    _user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
):
    achievement = await service.create(
        name=body.name,
        description=body.description,
        icon_url=body.icon_url,
        condition=body.condition,
        xp_reward=body.xp_reward,
    )
    return ApiResponse(data=achievement)


@router.delete("/achievements/{achievement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_achievement(
    achievement_id: str,
    _user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
) -> Response:
    await service.delete(achievement_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Current user ──


@router.get("/achievements/me", response_model=ApiResponse[list[EarnedAchievementResponse]])
async def list_my_achievements(
    user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
):
    return ApiResponse(data=await service.list_for_user(user_id))


@router.get("/stats/me", response_model=ApiResponse[StatsResponse])
async def get_my_stats(
    user_id: str = Depends(get_current_user_id),
    service: StatsService = Depends(get_stats_service),
):
    """XP, level, and streak. Creates the zeroed record on first read."""
    return ApiResponse(data=await service.get_stats(user_id))
