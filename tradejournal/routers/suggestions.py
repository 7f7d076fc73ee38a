"""AI 交易建议"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.suggestion import GenerateSuggestionsResponse, SuggestionStatusUpdate, TradeSuggestionView
from tradejournal.services.subscription_service import SubscriptionService
from tradejournal.services.trade_suggestion_service import TradeSuggestionService

router = APIRouter(prefix="/trade-suggestions", tags=["交易建议"])


@router.get("", response_model=list[TradeSuggestionView])
async def list_suggestions(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    return await TradeSuggestionService(session).list_suggestions(current_user)


@router.get("/active", response_model=list[TradeSuggestionView])
async def list_active_suggestions(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    return await TradeSuggestionService(session).list_active(current_user)


@router.post("/generate", response_model=GenerateSuggestionsResponse)
async def generate_suggestions(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """根据交易画像和行情信号生成建议（模型不可用时使用规则）"""
    allowed, message = await SubscriptionService(session).check_subscription_limits(current_user, "trade_suggestions")
    if not allowed:
        raise HTTPException(status_code=403, detail=message)
    profile, suggestions, provider = await TradeSuggestionService(session).generate(current_user)
    return GenerateSuggestionsResponse(provider=provider, profile=profile, suggestions=suggestions)


@router.put("/{suggestion_id}/status", response_model=TradeSuggestionView)
async def update_suggestion_status(
    suggestion_id: int,
    payload: SuggestionStatusUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    suggestion = await TradeSuggestionService(session).update_status(current_user, suggestion_id, payload.status)
    if not suggestion:
        raise HTTPException(status_code=404, detail="Trade suggestion not found")
    return suggestion


@router.delete("/{suggestion_id}")
async def delete_suggestion(
    suggestion_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    if not await TradeSuggestionService(session).delete(current_user, suggestion_id):
        raise HTTPException(status_code=404, detail="Trade suggestion not found")
    return {"status": "ok"}
