"""订阅 / 支付 / 优惠码 schemas"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from tradejournal.schemas.metrics import CamelModel


class SubscriptionLimits(CamelModel):
    max_trades: int = -1
    max_accounts: int = -1
    has_ai_analysis: bool = True
    has_advanced_reports: bool = True
    has_trade_suggestions: bool = True
    has_economic_calendar: bool = True


class SubscriptionStatus(CamelModel):
    subscription_type: str
    subscription_expiry: Optional[datetime] = None
    is_expired: bool = False
    limits: SubscriptionLimits


class UpgradeRequest(CamelModel):
    months: int = Field(1, ge=1, le=120)


class PromoValidateRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=64)


class PromoValidation(CamelModel):
    valid: bool
    message: Optional[str] = None
    code: Optional[str] = None
    discount: Optional[float] = None
    discount_amount: Optional[float] = None
    final_price: Optional[float] = None
    description: Optional[str] = None
    remaining_uses: Optional[int] = None


class PaymentIntentRequest(CamelModel):
    amount: float = Field(..., ge=0)
    promo_code: Optional[str] = None


class PaymentIntentResponse(CamelModel):
    success: bool = True
    free_access: bool = False
    client_secret: Optional[str] = None
    message: Optional[str] = None


class PromoStatusItem(CamelModel):
    code: str
    discount: float
    description: Optional[str] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    remaining_uses: Optional[int] = None
    available: bool = True


class PromoStatusResponse(CamelModel):
    promo_codes: list[PromoStatusItem] = []
