"""游戏化路由：积分统计、成就、每日进度"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.engine.gamification import calculate_level
from tradejournal.models.db import get_session
from tradejournal.schemas.gamification import (
    AchievementView,
    DailyProgressUpdate,
    DailyProgressView,
    UserStatsResponse,
    UserStatsUpdate,
    UserStatsView,
)
from tradejournal.services.gamification_service import GamificationService

router = APIRouter(tags=["游戏化"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _stats_response(stats) -> UserStatsResponse:
    return UserStatsResponse(
        stats=UserStatsView.model_validate(stats),
        level=calculate_level(stats.current_points or 0),
    )


@router.get("/user-stats", response_model=UserStatsResponse)
async def get_user_stats(
    response: Response,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    response.headers.update(NO_CACHE_HEADERS)
    stats = await GamificationService(session).get_or_create_stats(current_user)
    return _stats_response(stats)


@router.put("/user-stats", response_model=UserStatsResponse)
async def update_user_stats(
    payload: UserStatsUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    stats = await GamificationService(session).update_stats(current_user, payload.model_dump(exclude_none=True))
    return _stats_response(stats)


@router.get("/achievements", response_model=list[AchievementView])
async def list_achievements(
    response: Response,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """初始化缺失成就、评估解锁并同步 XP 后返回全部成就"""
    response.headers.update(NO_CACHE_HEADERS)
    svc = GamificationService(session)
    await svc.initialize_achievements(current_user)
    await svc.check_and_unlock(current_user)
    await svc.sync_points_with_achievements(current_user)
    achievements = await svc.list_achievements(current_user)
    return [AchievementView.model_validate(a) for a in achievements]


@router.post("/achievements/{achievement_id}/unlock", response_model=AchievementView)
async def unlock_achievement(
    achievement_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    achievement = await GamificationService(session).unlock_achievement(current_user, achievement_id)
    if not achievement:
        raise HTTPException(status_code=404, detail="Achievement not found")
    return AchievementView.model_validate(achievement)


@router.get("/daily-progress", response_model=Optional[DailyProgressView])
async def get_daily_progress(
    day: Optional[date] = Query(None, alias="date"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """指定日期（默认今天）的每日进度；没有记录时返回 null"""
    progress = await GamificationService(session).get_daily_progress(current_user, day or date.today())
    return DailyProgressView.model_validate(progress) if progress else None


@router.put("/daily-progress", response_model=DailyProgressView)
async def update_daily_progress(
    payload: DailyProgressUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    svc = GamificationService(session)
    flags = payload.model_dump(exclude={"date"}, exclude_none=True)
    progress = await svc.upsert_daily_progress(current_user, payload.date or date.today(), flags)
    view = DailyProgressView.model_validate(progress)
    await svc.after_trades_changed(current_user)
    return view


@router.get("/daily-progress/history", response_model=list[DailyProgressView])
async def get_daily_progress_history(
    days: int = Query(30, ge=1, le=366),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    history = await GamificationService(session).get_progress_history(current_user, days)
    return [DailyProgressView.model_validate(p) for p in history]
