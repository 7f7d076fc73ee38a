"""订阅服务：状态与限额、升级/取消、优惠码、Stripe 一次性支付"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from functools import partial
from typing import Optional

import stripe
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.config import settings
from tradejournal.models.admin import PromoCode
from tradejournal.models.user import User
from tradejournal.schemas.subscription import (
    PaymentIntentResponse,
    PromoStatusItem,
    PromoValidation,
    SubscriptionLimits,
    SubscriptionStatus,
)
from tradejournal.services.account_service import AccountService
from tradejournal.services.trade_service import TradeService

logger = logging.getLogger(__name__)

PREMIUM_PRODUCT = "premium-lifetime"

# 首次启动时写入的默认优惠码：(code, 折扣%, 描述, 最大使用次数)
DEFAULT_PROMO_CODES = [
    ("LAUNCH50", 50, "Launch discount 50%", None),
    ("WELCOME25", 25, "Welcome 25% off", None),
    ("SAVE20", 20, "Save 20%", None),
    ("STUDENT30", 30, "Student discount 30%", None),
    ("EARLY40", 40, "Early adopter 40%", None),
    ("SUIZO", 100, "Free access, limited", 20),
]


class PaymentError(Exception):
    """支付请求无效或支付服务不可用"""


def limits_for(subscription_type: str) -> SubscriptionLimits:
    if subscription_type == "premium":
        return SubscriptionLimits(
            max_trades=settings.PREMIUM_MAX_TRADES,
            max_accounts=settings.PREMIUM_MAX_ACCOUNTS,
        )
    return SubscriptionLimits(
        max_trades=settings.FREE_MAX_TRADES,
        max_accounts=settings.FREE_MAX_ACCOUNTS,
    )


async def seed_promo_codes(session: AsyncSession) -> int:
    """优惠码表为空时写入默认优惠码，返回新增数量"""
    result = await session.execute(select(func.count(PromoCode.id)))
    if result.scalar():
        return 0
    created = 0
    for code, discount, description, max_uses in DEFAULT_PROMO_CODES:
        session.add(PromoCode(
            code=code, discount=discount, description=description, max_uses=max_uses, current_uses=0, is_active=True,
        ))
        created += 1
    if created:
        await session.commit()
        logger.info(f"Seeded {created} promo codes")
    return created


def _is_expired(user: User, now: Optional[datetime] = None) -> bool:
    return bool(user.subscription_expiry and (now or datetime.utcnow()) > user.subscription_expiry)


class SubscriptionService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _set_subscription(self, user: User, subscription_type: str, expiry: Optional[datetime]) -> User:
        limits = limits_for(subscription_type)
        user.subscription_type = subscription_type
        user.subscription_expiry = expiry
        user.max_trades = limits.max_trades
        user.max_accounts = limits.max_accounts
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def _effective_user(self, user_id: str) -> Optional[User]:
        """过期的高级订阅自动降级"""
        user = await self.session.get(User, user_id)
        if user and user.subscription_type == "premium" and _is_expired(user):
            logger.info(f"Premium subscription expired for {user_id}, downgrading")
            user = await self._set_subscription(user, "freemium", None)
        return user

    async def get_status(self, user_id: str) -> Optional[SubscriptionStatus]:
        user = await self.session.get(User, user_id)
        if not user:
            return None
        expired = _is_expired(user)
        tier = "freemium" if expired else (user.subscription_type or "freemium")
        return SubscriptionStatus(
            subscription_type=tier,
            subscription_expiry=user.subscription_expiry,
            is_expired=expired,
            limits=limits_for(tier),
        )

    async def upgrade(self, user_id: str, months: int = 1) -> Optional[User]:
        user = await self.session.get(User, user_id)
        if not user:
            return None
        return await self._set_subscription(user, "premium", datetime.utcnow() + timedelta(days=30 * months))

    async def cancel(self, user_id: str) -> Optional[User]:
        user = await self.session.get(User, user_id)
        if not user:
            return None
        return await self._set_subscription(user, "freemium", None)

    async def check_subscription_limits(self, user_id: str, feature: str, adding: int = 1) -> tuple[bool, Optional[str]]:
        """检查功能限额，-1 表示不限"""
        user = await self._effective_user(user_id)
        if not user:
            return False, "User not found"
        limits = limits_for(user.subscription_type)

        if feature == "trade_creation" and limits.max_trades >= 0:
            current = await TradeService(self.session).count_trades(user_id)
            if current + adding > limits.max_trades:
                return False, f"Limit of {limits.max_trades} trades reached. Upgrade to Premium for unlimited trades."
        elif feature == "account_creation" and limits.max_accounts >= 0:
            current = await AccountService(self.session).count_accounts(user_id)
            if current + adding > limits.max_accounts:
                return False, f"Limit of {limits.max_accounts} accounts reached. Upgrade to Premium for more accounts."
        elif feature == "ai_analysis" and not limits.has_ai_analysis:
            return False, "AI analysis requires Premium"
        elif feature == "advanced_reports" and not limits.has_advanced_reports:
            return False, "Advanced reports require Premium"
        elif feature == "trade_suggestions" and not limits.has_trade_suggestions:
            return False, "Trade suggestions require Premium"
        elif feature == "economic_calendar" and not limits.has_economic_calendar:
            return False, "The economic calendar requires Premium"
        return True, None

    # ---- 优惠码 ----

    async def _get_promo(self, code: str) -> Optional[PromoCode]:
        result = await self.session.execute(
            select(PromoCode).where(func.upper(PromoCode.code) == code.strip().upper())
        )
        return result.scalars().first()

    async def validate_promo(self, code: str) -> PromoValidation:
        promo = await self._get_promo(code)
        if not promo or not promo.is_active:
            return PromoValidation(valid=False, message="Invalid promo code")
        if promo.expires_at and datetime.utcnow() > promo.expires_at:
            return PromoValidation(valid=False, message="Promo code expired")
        if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
            return PromoValidation(valid=False, message=f"Promo code exhausted ({promo.max_uses} uses)")

        price = settings.PREMIUM_PRICE_USD
        discount_amount = round(price * promo.discount / 100)
        return PromoValidation(
            valid=True,
            code=promo.code,
            discount=promo.discount,
            discount_amount=discount_amount,
            final_price=max(price - discount_amount, 0),
            description=promo.description,
            remaining_uses=promo.max_uses - promo.current_uses if promo.max_uses is not None else None,
        )

    async def promo_status(self) -> list[PromoStatusItem]:
        """所有启用中的优惠码及剩余次数"""
        result = await self.session.execute(
            select(PromoCode).where(PromoCode.is_active.is_(True)).order_by(PromoCode.id)
        )
        items = []
        for promo in result.scalars().all():
            remaining = promo.max_uses - promo.current_uses if promo.max_uses is not None else None
            expired = bool(promo.expires_at and datetime.utcnow() > promo.expires_at)
            items.append(PromoStatusItem(
                code=promo.code,
                discount=promo.discount,
                description=promo.description,
                max_uses=promo.max_uses,
                current_uses=promo.current_uses,
                remaining_uses=remaining,
                available=not expired and (remaining is None or remaining > 0),
            ))
        return items

    async def record_promo_use(self, code: Optional[str]) -> None:
        if not code:
            return
        await self.session.execute(
            update(PromoCode)
            .where(func.upper(PromoCode.code) == code.strip().upper())
            .values(current_uses=PromoCode.current_uses + 1)
        )
        await self.session.commit()

    # ---- Stripe ----

    async def create_payment_intent(
        self, user_id: str, amount: float, promo_code: Optional[str] = None
    ) -> PaymentIntentResponse:
        if amount == 0:
            # 只有 100% 折扣码可以免费开通
            if not promo_code:
                raise PaymentError("A promo code is required for free access")
            validation = await self.validate_promo(promo_code)
            if not validation.valid or validation.final_price:
                raise PaymentError(validation.message or "Promo code does not grant free access")
            user = await self.session.get(User, user_id)
            await self._set_subscription(user, "premium", None)
            await self.record_promo_use(promo_code)
            logger.info(f"Free premium access granted to {user_id} (promo={promo_code})")
            return PaymentIntentResponse(free_access=True, message="Premium access activated for free")

        cents = round(amount * 100)
        if cents < round(settings.STRIPE_MIN_CHARGE_USD * 100):
            raise PaymentError(f"Amount must be at least ${settings.STRIPE_MIN_CHARGE_USD:.2f}")
        if not settings.STRIPE_SECRET_KEY:
            raise PaymentError("Payments are not configured")

        stripe.api_key = settings.STRIPE_SECRET_KEY
        loop = asyncio.get_running_loop()
        try:
            intent = await loop.run_in_executor(None, partial(
                stripe.PaymentIntent.create,
                amount=cents,
                currency="usd",
                metadata={"userId": user_id, "product": PREMIUM_PRODUCT, "promoCode": promo_code or ""},
            ))
        except stripe.StripeError as e:
            logger.error(f"Stripe payment intent failed for {user_id}: {e}")
            raise PaymentError(str(e)) from e
        return PaymentIntentResponse(client_secret=intent.client_secret)

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise PaymentError("Webhook secret not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise PaymentError(f"Webhook Error: {e}") from e

        if event["type"] == "payment_intent.succeeded":
            intent = event["data"]["object"]
            metadata = intent.get("metadata") or {}
            user_id = metadata.get("userId")
            if user_id and metadata.get("product") == PREMIUM_PRODUCT:
                user = await self.session.get(User, user_id)
                if user:
                    await self._set_subscription(user, "premium", None)
                    await self.record_promo_use(metadata.get("promoCode"))
                    logger.info(f"💳 Premium activated for {user_id} via Stripe")
                else:
                    logger.warning(f"Stripe webhook for unknown user {user_id}")
        return {"received": True}
