"""AI 交易分析与聊天助手（OpenAI → DeepSeek → 规则引擎）"""
from __future__ import annotations

import json
import logging
import re
from collections import Counter
from typing import Optional, Sequence

from pydantic import ValidationError

from tradejournal.engine.metrics_aggregator import calculate_trading_metrics, is_closed, net_profit
from tradejournal.schemas.analysis import (
    AnalysisPatterns,
    AnalysisRecommendations,
    ChatResponse,
    SymbolInsight,
    TradingAnalysis,
)
from tradejournal.schemas.metrics import TradingMetrics
from tradejournal.services.ai_client_manager import call_ai_with_fallback

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a professional trading coach. Analyse the trader's statistics and answer "
    "with a single JSON object only."
)

CHAT_SYSTEM_PROMPT = (
    "You are a concise trading assistant inside a trading journal. Use the trader's statistics "
    "when relevant, give concrete risk-management advice, never promise returns, and answer in "
    "plain text without markdown."
)

DEFAULT_SUGGESTIONS = [
    "Analyse my overall performance",
    "Give me risk management tips",
    "Which symbols work best for me?",
    "Find patterns in my trades",
]


def _session_name(hour: int) -> str:
    if hour < 6:
        return "Asian late session (00-06h)"
    if hour < 12:
        return "London morning (06-12h)"
    if hour < 18:
        return "London / New York overlap (12-18h)"
    return "New York evening (18-24h)"


def build_trading_stats(trades: Sequence, metrics: Optional[TradingMetrics] = None) -> dict:
    """给模型的精简统计数据"""
    metrics = metrics or calculate_trading_metrics(trades)
    closed = [t for t in trades if is_closed(t)]
    by_session = Counter()
    for trade in closed:
        by_session[_session_name(trade.open_time.hour)] += net_profit(trade)

    hold_hours = [
        (t.close_time - t.open_time).total_seconds() / 3600 for t in closed if t.close_time >= t.open_time
    ]
    return {
        "totalTrades": metrics.total_trades,
        "winRate": round(metrics.win_rate, 2),
        "totalProfit": round(metrics.total_profit, 2),
        "avgWin": round(metrics.avg_win, 2),
        "avgLoss": round(metrics.avg_loss, 2),
        "profitFactor": round(metrics.profit_factor, 2),
        "maxDrawdown": round(metrics.max_drawdown, 2),
        "consecutiveLosses": metrics.consecutive_losses,
        "avgHoldHours": round(sum(hold_hours) / len(hold_hours), 2) if hold_hours else 0,
        "stopLossUsage": round(sum(1 for t in trades if t.stop_loss is not None) / len(trades) * 100, 1)
        if trades else 0,
        "sessionProfit": {k: round(v, 2) for k, v in by_session.items()},
        "symbols": [
            {"symbol": s.symbol, "profit": round(s.profit, 2), "trades": s.trades, "winRate": round(s.win_rate, 1)}
            for s in metrics.symbol_performance[:10]
        ],
    }


def starter_analysis() -> TradingAnalysis:
    return TradingAnalysis(
        patterns=AnalysisPatterns(
            time_based_patterns=["Not enough data for time-based analysis yet"],
            risk_patterns=["Start recording trades to unlock insights"],
        ),
        recommendations=AnalysisRecommendations(
            risk_management=["Set a stop loss on every position"],
            timing=["Keep a trading journal"],
            strategy=["Define a clear plan before entering a trade"],
        ),
        strengths=["Ready to start trading with a plan"],
        weaknesses=["No trading history to analyse yet"],
        overall_score=50,
        next_steps=["Record at least 10 trades to get a personalised analysis"],
    )


def rule_based_analysis(trades: Sequence) -> TradingAnalysis:
    """规则降级分析"""
    metrics = calculate_trading_metrics(trades)
    stats = build_trading_stats(trades, metrics)

    strengths, weaknesses = [], []
    risk, timing, strategy = [], [], []

    if metrics.win_rate >= 55:
        strengths.append(f"Solid win rate of {metrics.win_rate:.1f}%")
    else:
        weaknesses.append(f"Win rate of {metrics.win_rate:.1f}% leaves little room for error")
        strategy.append("Review your entry criteria and filter low-quality setups")

    if metrics.profit_factor >= 1.5:
        strengths.append(f"Healthy profit factor of {metrics.profit_factor:.2f}")
    elif metrics.total_trades:
        weaknesses.append(f"Profit factor of {metrics.profit_factor:.2f} is below 1.5")
        risk.append("Let winners run longer or cut losers earlier to lift the profit factor")

    if metrics.risk_reward_ratio and metrics.risk_reward_ratio < 1:
        weaknesses.append("Average loss is larger than average win")
        risk.append("Aim for a risk/reward ratio of at least 1:2")

    if stats["stopLossUsage"] < 80:
        weaknesses.append(f"Stop loss used on only {stats['stopLossUsage']}% of trades")
        risk.append("Use a stop loss on every position")
    else:
        strengths.append("Consistent use of stop losses")

    if metrics.consecutive_losses >= 4:
        risk.append(f"Pause after {min(metrics.consecutive_losses, 3)} losses in a row to avoid revenge trading")

    sessions = stats["sessionProfit"]
    time_patterns = [f"{name}: {profit:+.2f}" for name, profit in sorted(sessions.items(), key=lambda i: -i[1])]
    if sessions:
        best = max(sessions, key=sessions.get)
        timing.append(f"Focus on your most profitable window: {best}")

    symbol_insights = [
        SymbolInsight(
            symbol=s.symbol,
            performance="strong" if s.profit > 0 and s.win_rate >= 50 else "weak" if s.profit < 0 else "neutral",
            confidence=min(1.0, s.trades / 20),
        )
        for s in metrics.symbol_performance[:5]
    ]

    score = max(30.0, min(85.0, metrics.win_rate))
    return TradingAnalysis(
        patterns=AnalysisPatterns(
            time_based_patterns=time_patterns or ["No clear time-of-day pattern yet"],
            symbol_performance=symbol_insights,
            risk_patterns=[f"Max drawdown {metrics.max_drawdown:.2f}",
                           f"Longest losing streak {metrics.consecutive_losses}"],
        ),
        recommendations=AnalysisRecommendations(
            risk_management=risk or ["Keep risking a fixed fraction per trade"],
            timing=timing or ["Track the hour of each entry to find your best sessions"],
            strategy=strategy or ["Keep following the plan that is working"],
        ),
        strengths=strengths or ["Keeps a trading record"],
        weaknesses=weaknesses or ["No major weakness detected"],
        overall_score=score,
        next_steps=["Review the weakest symbol", "Set a daily loss limit", "Re-run the analysis after 20 more trades"],
        provider="rules",
    )


async def analyze_trading_performance(trades: Sequence) -> TradingAnalysis:
    if not trades:
        return starter_analysis()

    stats = build_trading_stats(trades)
    prompt = f"""Trader statistics (JSON):
{json.dumps(stats, default=str)}

Return JSON with exactly these keys:
{{
  "patterns": {{"timeBasedPatterns": [str], "symbolPerformance": [{{"symbol": str, "performance": str, "confidence": 0-1}}], "riskPatterns": [str]}},
  "recommendations": {{"riskManagement": [str], "timing": [str], "strategy": [str]}},
  "strengths": [str], "weaknesses": [str], "overallScore": 0-100, "nextSteps": [str, str, str]
}}"""

    content, provider = await call_ai_with_fallback(
        messages=[
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        temperature=0.4,
        response_format={"type": "json_object"},
    )
    if not content:
        return rule_based_analysis(trades)

    try:
        analysis = TradingAnalysis.model_validate(json.loads(content))
    except (ValueError, ValidationError) as e:
        logger.warning(f"AI analysis response could not be parsed, using rules: {e}")
        return rule_based_analysis(trades)
    analysis.provider = provider.value
    return analysis


_MARKDOWN_PATTERNS = [
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"\*(.*?)\*"), r"\1"),
    (re.compile(r"#{1,6}\s*"), ""),
    (re.compile(r"`{1,3}(.*?)`{1,3}", re.DOTALL), r"\1"),
    (re.compile(r"\[(.*?)\]\(.*?\)"), r"\1"),
    (re.compile(r"^>\s*", re.MULTILINE), ""),
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"_{2,}"), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]


def strip_markdown(text: str) -> str:
    for pattern, replacement in _MARKDOWN_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip()


def suggest_followups(message: str) -> list[str]:
    lower = message.lower()
    if "risk" in lower or "stop" in lower:
        return ["Analyse my stop losses", "What is my risk/reward ratio?", "Position sizing tips"]
    if "symbol" in lower or "pair" in lower:
        return ["Show my performance by symbol", "Diversification tips", "Which symbols should I avoid?"]
    if "time" in lower or "hour" in lower or "session" in lower:
        return ["What are my best hours?", "When am I most profitable?", "Tips for trading the NY session"]
    if "analy" in lower or "performance" in lower:
        return ["Find my specific mistakes", "Review my emotional discipline", "Do I revenge trade?"]
    return DEFAULT_SUGGESTIONS


def fallback_chat_response(message: str, stats: dict) -> ChatResponse:
    """无 AI 时的关键词回复"""
    lower = message.lower()
    total = stats.get("totalTrades", 0)
    if "analy" in lower or "performance" in lower:
        profit = stats.get("totalProfit", 0)
        verdict = (
            f"Total profit of ${profit:.2f}, the strategy is producing positive results."
            if profit > 0 else f"Net loss of ${abs(profit):.2f}, risk management needs adjusting."
        )
        text = f"Across your {total} trades the win rate is {stats.get('winRate', 0):.1f}%. {verdict}"
    elif "risk" in lower or "stop" in lower:
        text = ("To improve risk management: never risk more than 2% per trade, always use a stop loss, "
                "and keep risk/reward at 1:2 or better.")
    elif "symbol" in lower or "pair" in lower:
        best = stats.get("symbols") or []
        text = (f"Your best symbol so far is {best[0]['symbol']} with ${best[0]['profit']:.2f}."
                if best else "Import your trade history first so I can compare symbols.")
    elif "time" in lower or "hour" in lower or "session" in lower:
        text = ("The most liquid hours are usually the London (08-17h GMT) and New York (13-22h GMT) sessions. "
                "Check your session breakdown to find your own best window.")
    else:
        text = (f"I can see {total} recorded trades. What would you like to look at?"
                if total else "Hi! Import your trade history and I can start analysing your trading.")
    return ChatResponse(response=text, suggestions=suggest_followups(message), provider="rules")


async def trading_assistant_reply(message: str, trades: Sequence, context: Optional[dict] = None) -> ChatResponse:
    stats = build_trading_stats(trades)
    user_context = json.dumps({"stats": stats, "client": context or {}}, default=str)
    content, provider = await call_ai_with_fallback(
        messages=[
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            {"role": "system", "content": f"Trader context: {user_context}"},
            {"role": "user", "content": message},
        ],
        temperature=0.7,
        max_tokens=600,
    )
    if not content:
        return fallback_chat_response(message, stats)
    return ChatResponse(
        response=strip_markdown(content),
        suggestions=suggest_followups(message),
        provider=provider.value,
    )
