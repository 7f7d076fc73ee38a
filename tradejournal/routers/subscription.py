"""订阅、优惠码与 Stripe 支付"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.core.config import settings
from tradejournal.models.db import get_session
from tradejournal.schemas.subscription import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    PromoStatusResponse,
    PromoValidateRequest,
    PromoValidation,
    SubscriptionStatus,
    UpgradeRequest,
)
from tradejournal.services.subscription_service import PaymentError, SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["订阅"])

# Stripe 回调不带用户 token，单独注册且不挂认证依赖
webhook_router = APIRouter(tags=["订阅"])


@router.get("/subscription/status", response_model=SubscriptionStatus)
async def get_subscription_status(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    status = await SubscriptionService(session).get_status(current_user)
    if not status:
        raise HTTPException(status_code=404, detail="User not found")
    return status


@router.post("/subscription/upgrade", response_model=SubscriptionStatus)
async def upgrade_subscription(
    payload: Optional[UpgradeRequest] = None,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    svc = SubscriptionService(session)
    months = payload.months if payload else 1
    if not await svc.upgrade(current_user, months):
        raise HTTPException(status_code=404, detail="User not found")
    return await svc.get_status(current_user)


@router.post("/subscription/cancel", response_model=SubscriptionStatus)
async def cancel_subscription(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    svc = SubscriptionService(session)
    if not await svc.cancel(current_user):
        raise HTTPException(status_code=404, detail="User not found")
    return await svc.get_status(current_user)


@router.post("/validate-promo", response_model=PromoValidation)
async def validate_promo(
    payload: PromoValidateRequest,
    session: AsyncSession = Depends(get_session),
):
    """校验优惠码并计算折后价"""
    result = await SubscriptionService(session).validate_promo(payload.code)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.message)
    return result


@router.get("/promo-status", response_model=PromoStatusResponse)
async def promo_status(session: AsyncSession = Depends(get_session)):
    return PromoStatusResponse(promo_codes=await SubscriptionService(session).promo_status())


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    payload: PaymentIntentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """一次性购买高级版；金额为 0（100% 优惠码）时直接开通"""
    try:
        return await SubscriptionService(session).create_payment_intent(
            current_user, payload.amount, payload.promo_code
        )
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@webhook_router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    session: AsyncSession = Depends(get_session),
):
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")
    payload = await request.body()
    try:
        return await SubscriptionService(session).handle_webhook(payload, stripe_signature)
    except PaymentError as e:
        logger.warning(f"Stripe webhook rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
