"""交易建议 schemas"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from tradejournal.schemas.metrics import CamelModel


class TraderProfile(CamelModel):
    total_trades: int = 0
    win_rate: float = 0.0
    average_profit: float = 0.0
    risk_tolerance: Literal["low", "medium", "high"] = "medium"
    preferred_symbols: list[str] = ["EURUSD", "GBPUSD"]
    trading_style: Literal["scalping", "day_trading", "swing_trading"] = "day_trading"
    avg_hold_time: float = 4.0  # 小时


class RiskAssessment(CamelModel):
    score: int
    factors: list[str] = []
    recommendation: Literal["favorable", "moderate", "caution", "avoid"]


class SuggestionDraft(CamelModel):
    """模型返回的单条建议（字段缺失或非法时整条丢弃）"""
    symbol: str = Field(..., min_length=1, max_length=32)
    type: Literal["buy", "sell"]
    entry_price: float = Field(..., gt=0)
    stop_loss: Optional[float] = Field(None, gt=0)
    take_profit: Optional[float] = Field(None, gt=0)
    lot_size: float = Field(0.1, gt=0)
    risk_score: float = 50
    confidence_score: float = 50
    reasoning: str = Field(..., min_length=1)
    market_analysis: str = "Automatic analysis based on historical data"
    timeframe: str = "4h"

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class TradeSuggestionView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    type: str
    entry_price: float
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    lot_size: float
    risk_score: int
    confidence_score: int
    reasoning: str
    market_analysis: str
    timeframe: str
    provider: str = "rules"
    valid_until: datetime
    status: str = "active"
    created_at: Optional[datetime] = None
    risk_assessment: Optional[RiskAssessment] = None


class GenerateSuggestionsResponse(CamelModel):
    status: str = "ok"
    provider: str = "rules"
    profile: TraderProfile
    suggestions: list[TradeSuggestionView] = []


class SuggestionStatusUpdate(CamelModel):
    status: Literal["active", "executed", "expired"]
