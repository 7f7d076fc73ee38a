"""
AI 交易建议

交易画像（胜率、常用品种、持仓时长、风险偏好） + 行情信号 -> LLM 生成 3-5 条建议；
模型不可用或返回无法解析时按规则生成。每条建议附带风险评估。
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import delete, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.config import settings
from tradejournal.engine.metrics_aggregator import calculate_trading_metrics, is_closed, net_profit
from tradejournal.models.trade_suggestion import TradeSuggestion
from tradejournal.schemas.suggestion import (
    RiskAssessment,
    SuggestionDraft,
    TradeSuggestionView,
    TraderProfile,
)
from tradejournal.services.ai_client_manager import call_ai_with_fallback
from tradejournal.services.market_data_service import MarketDataService
from tradejournal.services.trade_service import TradeService

logger = logging.getLogger(__name__)

SUGGESTION_SYSTEM_PROMPT = (
    "You are a professional trading advisor with 20 years of experience in forex and commodity markets. "
    "Generate specific, actionable trade suggestions with detailed risk analysis. "
    "Always respond in valid JSON format."
)

HIGH_VOLATILITY_SYMBOLS = {"XAUUSD", "BTCUSD"}

LOT_SIZE_BY_TOLERANCE = {"low": 0.05, "medium": 0.1, "high": 0.2}
RISK_SCORE_BY_TOLERANCE = {"low": 25, "medium": 50, "high": 75}
TIMEFRAME_BY_STYLE = {"scalping": "1h", "day_trading": "4h", "swing_trading": "1d"}


def _clamp_score(value: float) -> int:
    return int(max(1, min(100, round(value))))


def analyze_trader_profile(trades: Sequence) -> TraderProfile:
    """交易画像；没有交易时返回默认画像"""
    if not trades:
        return TraderProfile()

    metrics = calculate_trading_metrics(trades)
    closed = [t for t in trades if is_closed(t)]

    symbol_counts = Counter(t.symbol for t in trades)
    preferred = [symbol for symbol, _ in symbol_counts.most_common(5)]

    hold_hours = [
        (t.close_time - t.open_time).total_seconds() / 3600 for t in closed if t.close_time >= t.open_time
    ]
    avg_hold = sum(hold_hours) / len(hold_hours) if hold_hours else 4.0

    nets = [net_profit(t) for t in closed]
    max_win = max(nets, default=0.0)
    max_loss = min(min(nets, default=0.0), 0.0)
    if max_loss and abs(max_loss) > max_win * 0.5:
        tolerance = "high"
    elif metrics.win_rate > 60:
        tolerance = "low"
    else:
        tolerance = "medium"

    if avg_hold < 1:
        style = "scalping"
    elif avg_hold < 24:
        style = "day_trading"
    else:
        style = "swing_trading"

    return TraderProfile(
        total_trades=len(trades),
        win_rate=metrics.win_rate,
        average_profit=metrics.total_profit / metrics.total_trades if metrics.total_trades else 0.0,
        risk_tolerance=tolerance,
        preferred_symbols=preferred,
        trading_style=style,
        avg_hold_time=avg_hold,
    )


def calculate_risk_score(suggestion, profile: TraderProfile) -> RiskAssessment:
    """基准 50 分，按品种波动、仓位、盈亏比与风险偏好调整"""
    factors = []
    score = 50

    if suggestion.symbol in HIGH_VOLATILITY_SYMBOLS:
        score += 20
        factors.append("High volatility instrument")

    if suggestion.lot_size > 0.2 and profile.total_trades < 50:
        score += 15
        factors.append("Large position size for experience level")

    risk = abs(suggestion.entry_price - suggestion.stop_loss) if suggestion.stop_loss else 0.0
    reward = abs(suggestion.take_profit - suggestion.entry_price) if suggestion.take_profit else 0.0
    risk_reward = reward / risk if risk else 0.0
    if risk_reward < 1.5:
        score += 10
        factors.append("Unfavorable risk-reward ratio")
    elif risk_reward > 2.5:
        score -= 10
        factors.append("Excellent risk-reward ratio")

    if profile.risk_tolerance == "low" and score > 60:
        score += 10
        factors.append("High risk for conservative trader")
    elif profile.risk_tolerance == "high" and score < 40:
        score -= 5
        factors.append("Suitable for aggressive trader")

    score = _clamp_score(score)
    if score < 30:
        recommendation = "favorable"
    elif score < 50:
        recommendation = "moderate"
    elif score < 70:
        recommendation = "caution"
    else:
        recommendation = "avoid"
    return RiskAssessment(score=score, factors=factors, recommendation=recommendation)


def rule_based_suggestions(profile: TraderProfile, signals: Sequence[dict]) -> list[SuggestionDraft]:
    """常用前三个品种，顺势；无趋势时按支撑/阻力中线做均值回归"""
    by_symbol = {s["symbol"]: s for s in signals}
    drafts = []
    for symbol in profile.preferred_symbols[:3]:
        signal = by_symbol.get(symbol)
        if not signal:
            continue

        price = signal["current_price"]
        if signal["signal"] == "BUY":
            is_long = True
        elif signal["signal"] == "SELL":
            is_long = False
        else:
            is_long = price <= (signal["support"] + signal["resistance"]) / 2

        direction = "Bullish" if is_long else "Bearish"
        drafts.append(SuggestionDraft(
            symbol=symbol,
            type="buy" if is_long else "sell",
            entry_price=price,
            stop_loss=price * (0.995 if is_long else 1.005),
            take_profit=price * (1.01 if is_long else 0.99),
            lot_size=LOT_SIZE_BY_TOLERANCE[profile.risk_tolerance],
            risk_score=RISK_SCORE_BY_TOLERANCE[profile.risk_tolerance],
            confidence_score=max(60, signal["strength"]),
            reasoning=f"{direction} setup on {symbol} with a 1:2 risk-reward ratio",
            market_analysis=(
                f"Trend {signal['trend']}, volatility {signal['volatility']:.2f}%, "
                f"support {signal['support']:.5f}, resistance {signal['resistance']:.5f}"
            ),
            timeframe=TIMEFRAME_BY_STYLE[profile.trading_style],
        ))
    return drafts


def build_suggestion_prompt(profile: TraderProfile, signals: Sequence[dict]) -> str:
    market_lines = "\n".join(
        f"{s['symbol']}: Price {s['current_price']:.5f}, Trend {s['trend']}, Signal {s['signal']}, "
        f"Volatility {s['volatility']:.2f}%, Support {s['support']:.5f}, Resistance {s['resistance']:.5f}"
        for s in signals
    )
    return f"""Based on this trader profile and market data, generate 3-5 specific trade suggestions with risk analysis.

TRADER PROFILE:
- Total Trades: {profile.total_trades}
- Win Rate: {profile.win_rate:.1f}%
- Average Profit: ${profile.average_profit:.2f}
- Risk Tolerance: {profile.risk_tolerance}
- Preferred Symbols: {", ".join(profile.preferred_symbols)}
- Trading Style: {profile.trading_style}
- Average Hold Time: {profile.avg_hold_time:.1f} hours

MARKET DATA:
{market_lines}

Return JSON:
{{"suggestions": [{{"symbol": "EURUSD", "type": "buy", "entryPrice": 1.0550, "stopLoss": 1.0520, "takeProfit": 1.0580,
"lotSize": 0.1, "riskScore": 35, "confidenceScore": 75, "reasoning": str, "marketAnalysis": str, "timeframe": "4h"}}]}}

Requirements:
- riskScore 1-100 (lower = safer), confidenceScore 1-100
- Match the trader's risk tolerance and preferred symbols
- Give specific entry, stop loss and take profit levels
- Size positions according to the risk tolerance"""


def parse_ai_suggestions(content: str) -> list[SuggestionDraft]:
    """解析模型 JSON，丢弃不合法的条目"""
    try:
        payload = json.loads(content)
    except ValueError as e:
        logger.warning(f"AI suggestions are not valid JSON: {e}")
        return []
    items = payload.get("suggestions") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        return []

    drafts = []
    for item in items:
        try:
            drafts.append(SuggestionDraft.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping invalid AI suggestion: {e.error_count()} errors")
    return drafts


async def generate_suggestion_drafts(
    profile: TraderProfile, signals: Sequence[dict]
) -> tuple[list[SuggestionDraft], str]:
    content, provider = await call_ai_with_fallback(
        messages=[
            {"role": "system", "content": SUGGESTION_SYSTEM_PROMPT},
            {"role": "user", "content": build_suggestion_prompt(profile, signals)},
        ],
        temperature=0.4,
        max_tokens=2000,
        response_format={"type": "json_object"},
    )
    if content:
        drafts = parse_ai_suggestions(content)[: settings.SUGGESTION_MAX_COUNT]
        if drafts:
            return drafts, provider.value
        logger.warning("AI returned no usable suggestions, using rules")
    return rule_based_suggestions(profile, signals), "rules"


class TradeSuggestionService:
    def __init__(self, session: AsyncSession, market: Optional[MarketDataService] = None):
        self.session = session
        self.market = market or MarketDataService()

    async def list_suggestions(self, user_id: str) -> list[TradeSuggestion]:
        result = await self.session.execute(
            select(TradeSuggestion)
            .where(TradeSuggestion.user_id == user_id)
            .order_by(desc(TradeSuggestion.created_at), desc(TradeSuggestion.id))
        )
        return list(result.scalars().all())

    async def expire_stale(self, user_id: str) -> int:
        result = await self.session.execute(
            update(TradeSuggestion)
            .where(
                TradeSuggestion.user_id == user_id,
                TradeSuggestion.status == "active",
                TradeSuggestion.valid_until < datetime.utcnow(),
            )
            .values(status="expired")
        )
        await self.session.commit()
        return result.rowcount or 0

    async def list_active(self, user_id: str) -> list[TradeSuggestion]:
        """过期的建议先标记为 expired"""
        await self.expire_stale(user_id)
        result = await self.session.execute(
            select(TradeSuggestion)
            .where(TradeSuggestion.user_id == user_id, TradeSuggestion.status == "active")
            .order_by(desc(TradeSuggestion.created_at), desc(TradeSuggestion.id))
        )
        return list(result.scalars().all())

    async def generate(self, user_id: str) -> tuple[TraderProfile, list[TradeSuggestionView], str]:
        trades = await TradeService(self.session).list_trades(user_id)
        profile = analyze_trader_profile(trades)
        signals = (await self.market.get_signals(profile.preferred_symbols))["signals"]

        drafts, provider = await generate_suggestion_drafts(profile, signals)
        valid_until = datetime.utcnow() + timedelta(hours=settings.SUGGESTION_VALID_HOURS)
        rows = []
        for draft in drafts:
            row = TradeSuggestion(
                user_id=user_id,
                symbol=draft.symbol,
                type=draft.type,
                entry_price=draft.entry_price,
                stop_loss=draft.stop_loss,
                take_profit=draft.take_profit,
                lot_size=draft.lot_size,
                risk_score=_clamp_score(draft.risk_score),
                confidence_score=_clamp_score(draft.confidence_score),
                reasoning=draft.reasoning,
                market_analysis=draft.market_analysis,
                timeframe=draft.timeframe,
                provider=provider,
                valid_until=valid_until,
                status="active",
            )
            self.session.add(row)
            rows.append((row, draft))
        await self.session.commit()
        logger.info(f"Generated {len(rows)} trade suggestions for {user_id} (provider={provider})")

        views = []
        for row, draft in rows:
            await self.session.refresh(row)
            view = TradeSuggestionView.model_validate(row)
            view.risk_assessment = calculate_risk_score(draft, profile)
            views.append(view)
        return profile, views, provider

    async def update_status(self, user_id: str, suggestion_id: int, status: str) -> Optional[TradeSuggestion]:
        suggestion = await self._get(user_id, suggestion_id)
        if not suggestion:
            return None
        suggestion.status = status
        suggestion.updated_at = datetime.utcnow()
        await self.session.commit()
        await self.session.refresh(suggestion)
        return suggestion

    async def delete(self, user_id: str, suggestion_id: int) -> bool:
        result = await self.session.execute(
            delete(TradeSuggestion).where(TradeSuggestion.id == suggestion_id, TradeSuggestion.user_id == user_id)
        )
        await self.session.commit()
        return bool(result.rowcount)

    async def _get(self, user_id: str, suggestion_id: int) -> Optional[TradeSuggestion]:
        result = await self.session.execute(
            select(TradeSuggestion).where(TradeSuggestion.id == suggestion_id, TradeSuggestion.user_id == user_id)
        )
        return result.scalars().first()
