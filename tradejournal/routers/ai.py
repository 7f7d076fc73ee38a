"""AI 交易分析与聊天助手"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.analysis import ChatRequest, ChatResponse, TradingAnalysis
from tradejournal.services.ai_analysis_service import analyze_trading_performance, trading_assistant_reply
from tradejournal.services.ai_client_manager import get_circuit_breaker_status
from tradejournal.services.subscription_service import SubscriptionService
from tradejournal.services.trade_service import TradeService

router = APIRouter(tags=["AI 分析"])


@router.post("/ai/analyze", response_model=TradingAnalysis)
async def analyze(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """AI 交易表现分析；AI 不可用时返回规则分析"""
    allowed, message = await SubscriptionService(session).check_subscription_limits(current_user, "ai_analysis")
    if not allowed:
        raise HTTPException(status_code=403, detail=message)
    trades = await TradeService(session).list_trades(current_user)
    if not trades:
        raise HTTPException(status_code=400, detail="No trading data to analyse. Import your CSV first.")
    return await analyze_trading_performance(trades)


@router.post("/chat/trading-assistant", response_model=ChatResponse)
async def trading_assistant(
    payload: ChatRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    trades = await TradeService(session).list_trades(current_user)
    return await trading_assistant_reply(payload.message, trades, payload.context)


@router.get("/ai/providers/status")
async def providers_status():
    """各 AI 提供商的熔断状态"""
    return {"status": "ok", "providers": get_circuit_breaker_status()}
