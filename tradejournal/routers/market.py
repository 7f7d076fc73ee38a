"""行情与新闻（未配置 API Key 时返回模拟数据）"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.market import (
    AnalysisResponse,
    EconomicCalendarResponse,
    HistoricalResponse,
    NewsResponse,
    QuotesResponse,
    SignalsResponse,
)
from tradejournal.services.market_data_service import MarketDataError, MarketDataService
from tradejournal.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/market", tags=["行情"])


@router.get("/quotes", response_model=QuotesResponse)
async def get_quotes(symbols: Optional[str] = Query(None, description="逗号分隔，如 EURUSD,GBPUSD")):
    result = await MarketDataService().get_live_quotes((symbols or "").split(","))
    return QuotesResponse(data=result["quotes"], is_simulated=result["is_simulated"])


@router.get("/historical/{symbol}", response_model=HistoricalResponse)
async def get_historical(
    symbol: str,
    days: int = Query(30, ge=1, le=365),
    period: str = Query("1D"),
):
    result = await MarketDataService().get_historical(symbol, days, period)
    return HistoricalResponse(symbol=result["symbol"], data=result["data"], is_simulated=result["is_simulated"])


@router.get("/analysis/{symbol}", response_model=AnalysisResponse)
async def get_analysis(symbol: str):
    """SMA20 趋势、波动率、支撑/阻力"""
    try:
        result = await MarketDataService().get_analysis(symbol)
    except MarketDataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AnalysisResponse(**result)


@router.get("/news", response_model=NewsResponse)
async def get_news(
    category: Literal["general", "forex", "crypto", "economy"] = "general",
    limit: int = Query(20, ge=1, le=50),
):
    result = await MarketDataService().get_news(category, limit)
    return NewsResponse(
        category=result["category"],
        articles=result["articles"],
        total=result["total"],
        is_simulated=result["is_simulated"],
    )


@router.get("/signals", response_model=SignalsResponse)
async def get_signals(symbols: Optional[str] = Query(None, description="逗号分隔，默认 EURUSD,GBPUSD,USDJPY")):
    result = await MarketDataService().get_signals((symbols or "").split(","))
    return SignalsResponse(signals=result["signals"], is_simulated=result["is_simulated"])


@router.get("/economic-calendar", response_model=EconomicCalendarResponse)
async def get_economic_calendar(
    days: int = Query(7, ge=1, le=30),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    allowed, message = await SubscriptionService(session).check_subscription_limits(current_user, "economic_calendar")
    if not allowed:
        raise HTTPException(status_code=403, detail=message)
    result = await MarketDataService().get_economic_calendar(days)
    return EconomicCalendarResponse(**result)
