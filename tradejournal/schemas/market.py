"""行情 / 新闻 schemas"""
from typing import Any, Optional

from tradejournal.schemas.metrics import CamelModel


class Quote(CamelModel):
    instrument: str
    bid: float
    ask: float
    mid: float
    spread: float
    timestamp: int


class QuotesResponse(CamelModel):
    success: bool = True
    data: list[Quote] = []
    is_simulated: bool = False


class HistoricalBar(CamelModel):
    date: str
    open: float
    high: float
    low: float
    close: float


class HistoricalResponse(CamelModel):
    success: bool = True
    symbol: str
    data: list[HistoricalBar] = []
    is_simulated: bool = False


class TrendAnalysis(CamelModel):
    trend: str
    volatility: float
    support: float
    resistance: float
    recommendation: str


class AnalysisResponse(CamelModel):
    success: bool = True
    symbol: str
    analysis: Optional[TrendAnalysis] = None
    is_simulated: bool = False


class NewsResponse(CamelModel):
    success: bool = True
    category: str = "general"
    articles: list[dict[str, Any]] = []
    total: int = 0
    is_simulated: bool = False


class MarketSignal(CamelModel):
    symbol: str
    signal: str
    strength: int
    current_price: float
    trend: str
    volatility: float
    support: float
    resistance: float
    recommendation: str
    timestamp: int


class SignalsResponse(CamelModel):
    success: bool = True
    signals: list[MarketSignal] = []
    is_simulated: bool = False


class EconomicEvent(CamelModel):
    time: str
    country: str
    event: str
    impact: str
    forecast: Optional[str] = None
    previous: Optional[str] = None
    actual: Optional[str] = None
    currency: str
    importance: int
    category: str


class EconomicCalendarResponse(CamelModel):
    success: bool = True
    events: list[EconomicEvent] = []
    total: int = 0
    is_simulated: bool = True
    news_adjusted: bool = False
