"""交易指标、权益曲线、日历"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.metrics import CalendarDay, EquityPoint, MetricsSummary, TradingMetrics
from tradejournal.services.metrics_service import MetricsService

router = APIRouter(tags=["交易指标"])


@router.get("/metrics", response_model=TradingMetrics)
async def get_metrics(
    account_id: Optional[int] = Query(None, alias="accountId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """完整交易指标（净利润口径，仅统计已平仓交易）"""
    return await MetricsService(session).get_metrics(current_user, account_id, start_date, end_date)


@router.get("/metrics/summary", response_model=MetricsSummary)
async def get_metrics_summary(
    account_id: Optional[int] = Query(None, alias="accountId"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    summary = await MetricsService(session).get_summary(current_user, account_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return summary


@router.get("/charts/profit-loss", response_model=list[EquityPoint])
async def get_profit_loss_chart(
    account_id: Optional[int] = Query(None, alias="accountId"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    curve = await MetricsService(session).get_equity_curve(current_user, account_id)
    if curve is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return curve


@router.get("/calendar", response_model=list[CalendarDay])
async def get_calendar(
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="YYYY-MM"),
    account_id: Optional[int] = Query(None, alias="accountId"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    if month and not 1 <= int(month[5:]) <= 12:
        raise HTTPException(status_code=400, detail="Invalid month")
    return await MetricsService(session).get_calendar(current_user, month, account_id)
