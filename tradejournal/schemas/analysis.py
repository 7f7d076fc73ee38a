"""AI 分析 / 聊天助手 schemas"""
from typing import Any, Optional

from pydantic import Field

from tradejournal.schemas.metrics import CamelModel


class SymbolInsight(CamelModel):
    symbol: str
    performance: str
    confidence: float = 0.5


class AnalysisPatterns(CamelModel):
    time_based_patterns: list[str] = []
    symbol_performance: list[SymbolInsight] = []
    risk_patterns: list[str] = []


class AnalysisRecommendations(CamelModel):
    risk_management: list[str] = []
    timing: list[str] = []
    strategy: list[str] = []


class TradingAnalysis(CamelModel):
    patterns: AnalysisPatterns = Field(default_factory=AnalysisPatterns)
    recommendations: AnalysisRecommendations = Field(default_factory=AnalysisRecommendations)
    strengths: list[str] = []
    weaknesses: list[str] = []
    overall_score: float = Field(50, ge=0, le=100)
    next_steps: list[str] = []
    provider: Optional[str] = None


class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1, max_length=2000)
    context: Optional[dict[str, Any]] = None


class ChatResponse(CamelModel):
    response: str
    suggestions: list[str] = []
    provider: Optional[str] = None
