"""AI 不可用时的规则降级测试"""
import json
from datetime import datetime, timedelta
from types import SimpleNamespace

from tradejournal.services import ai_analysis_service
from tradejournal.services.ai_client_manager import AIProvider, _clean_json_content, call_ai_with_fallback


def make_trade(i, profit, symbol="EURUSD", stop_loss=1.0):
    open_time = datetime(2024, 3, 4, 9) + timedelta(hours=i)
    return SimpleNamespace(
        id=i,
        symbol=symbol,
        open_time=open_time,
        close_time=open_time + timedelta(hours=1),
        profit=profit,
        lots=0.1,
        commission=0.0,
        swap=0.0,
        stop_loss=stop_loss,
        take_profit=None,
    )


async def _no_ai(*args, **kwargs):
    return None, None


async def test_no_providers_configured_returns_none():
    """未配置任何 API Key 时直接返回 (None, None)"""
    content, provider = await call_ai_with_fallback(messages=[{"role": "user", "content": "hi"}])
    assert content is None
    assert provider is None


async def test_analysis_without_trades_is_starter():
    analysis = await ai_analysis_service.analyze_trading_performance([])
    assert analysis.overall_score == 50
    assert analysis.next_steps


async def test_analysis_falls_back_to_rules(monkeypatch):
    monkeypatch.setattr(ai_analysis_service, "call_ai_with_fallback", _no_ai)
    trades = [make_trade(i, p) for i, p in enumerate([10, -5, 10, 10, -5])]
    analysis = await ai_analysis_service.analyze_trading_performance(trades)
    assert analysis.provider == "rules"
    assert 0 <= analysis.overall_score <= 100
    assert analysis.strengths
    assert analysis.recommendations.risk_management


async def test_analysis_uses_ai_json(monkeypatch):
    payload = {
        "patterns": {"timeBasedPatterns": ["Mornings are best"], "symbolPerformance": [], "riskPatterns": []},
        "recommendations": {"riskManagement": ["Cut losers"], "timing": [], "strategy": []},
        "strengths": ["Discipline"],
        "weaknesses": ["Overtrading"],
        "overallScore": 72,
        "nextSteps": ["a", "b", "c"],
    }

    async def fake_ai(*args, **kwargs):
        return json.dumps(payload), AIProvider.OPENAI

    monkeypatch.setattr(ai_analysis_service, "call_ai_with_fallback", fake_ai)
    analysis = await ai_analysis_service.analyze_trading_performance([make_trade(0, 10)])
    assert analysis.provider == "openai"
    assert analysis.overall_score == 72
    assert analysis.strengths == ["Discipline"]


async def test_unparseable_ai_response_uses_rules(monkeypatch):
    async def fake_ai(*args, **kwargs):
        return "not json at all", AIProvider.DEEPSEEK

    monkeypatch.setattr(ai_analysis_service, "call_ai_with_fallback", fake_ai)
    analysis = await ai_analysis_service.analyze_trading_performance([make_trade(0, 10)])
    assert analysis.provider == "rules"


async def test_chat_fallback_mentions_win_rate(monkeypatch):
    monkeypatch.setattr(ai_analysis_service, "call_ai_with_fallback", _no_ai)
    trades = [make_trade(i, p) for i, p in enumerate([10, -5, 10, 10, -5])]
    reply = await ai_analysis_service.trading_assistant_reply("Analyse my performance", trades)
    assert reply.provider == "rules"
    assert "60.0%" in reply.response
    assert reply.suggestions


async def test_chat_strips_markdown(monkeypatch):
    async def fake_ai(*args, **kwargs):
        return "## Tips\n**Always** use a stop loss", AIProvider.OPENAI

    monkeypatch.setattr(ai_analysis_service, "call_ai_with_fallback", fake_ai)
    reply = await ai_analysis_service.trading_assistant_reply("risk tips?", [])
    assert reply.response == "Tips\nAlways use a stop loss"
    assert reply.provider == "openai"


def test_clean_json_content():
    assert _clean_json_content('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert _clean_json_content('Here you go: {"a": 1} thanks') == '{"a": 1}'
