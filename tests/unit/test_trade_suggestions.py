"""交易建议：交易画像、风险评分、规则降级与持久化"""
import json
from datetime import datetime, timedelta
from types import SimpleNamespace

from tradejournal.models.account import Account
from tradejournal.models.trade import Trade
from tradejournal.models.user import User
from tradejournal.schemas.suggestion import SuggestionDraft, TraderProfile
from tradejournal.services import trade_suggestion_service
from tradejournal.services.ai_client_manager import AIProvider
from tradejournal.services.trade_suggestion_service import (
    TradeSuggestionService,
    analyze_trader_profile,
    calculate_risk_score,
    generate_suggestion_drafts,
    parse_ai_suggestions,
    rule_based_suggestions,
)


def make_trade(i, profit, symbol="EURUSD", hold_minutes=120):
    open_time = datetime(2024, 3, 4, 9) + timedelta(hours=i)
    return SimpleNamespace(
        symbol=symbol,
        open_time=open_time,
        close_time=open_time + timedelta(minutes=hold_minutes),
        profit=profit,
        commission=0.0,
        swap=0.0,
    )


def make_signal(symbol, signal, price, strength=80, support=None, resistance=None):
    return {
        "symbol": symbol,
        "signal": signal,
        "strength": strength,
        "current_price": price,
        "trend": {"BUY": "up", "SELL": "down"}.get(signal, "sideways"),
        "volatility": 0.5,
        "support": support if support is not None else price * 0.98,
        "resistance": resistance if resistance is not None else price * 1.02,
    }


async def _no_ai(*args, **kwargs):
    return None, None


def test_empty_history_gives_default_profile():
    profile = analyze_trader_profile([])
    assert profile.total_trades == 0
    assert profile.preferred_symbols == ["EURUSD", "GBPUSD"]
    assert profile.risk_tolerance == "medium"
    assert profile.trading_style == "day_trading"


def test_profile_from_trades():
    trades = [make_trade(i, 10) for i in range(3)] + [make_trade(3, -30, symbol="GBPUSD")]
    profile = analyze_trader_profile(trades)
    assert profile.total_trades == 4
    assert profile.win_rate == 75
    assert profile.preferred_symbols == ["EURUSD", "GBPUSD"]
    # 最大亏损超过最大盈利的一半
    assert profile.risk_tolerance == "high"
    assert profile.trading_style == "day_trading"
    assert profile.avg_hold_time == 2


def test_consistent_scalper_is_low_risk():
    trades = [make_trade(i, 5, hold_minutes=30) for i in range(5)]
    profile = analyze_trader_profile(trades)
    assert profile.risk_tolerance == "low"
    assert profile.trading_style == "scalping"


def test_risk_score_for_volatile_oversized_trade():
    draft = SuggestionDraft(
        symbol="XAUUSD", type="buy", entry_price=2000, stop_loss=1990, take_profit=2030,
        lot_size=0.5, reasoning="breakout",
    )
    assessment = calculate_risk_score(draft, TraderProfile(total_trades=10, risk_tolerance="low"))
    assert assessment.score == 85
    assert assessment.recommendation == "avoid"
    assert "High volatility instrument" in assessment.factors
    assert "Excellent risk-reward ratio" in assessment.factors


def test_risk_score_without_stop_loss():
    draft = SuggestionDraft(symbol="EURUSD", type="sell", entry_price=1.1, lot_size=0.1, reasoning="range top")
    assessment = calculate_risk_score(draft, TraderProfile())
    assert assessment.score == 60
    assert assessment.factors == ["Unfavorable risk-reward ratio"]
    assert assessment.recommendation == "caution"


def test_rule_based_suggestions_follow_signals():
    profile = TraderProfile(preferred_symbols=["EURUSD", "GBPUSD", "USDJPY", "AUDUSD"])
    signals = [
        make_signal("EURUSD", "BUY", 1.1),
        make_signal("GBPUSD", "SELL", 1.3, strength=60),
        make_signal("USDJPY", "NEUTRAL", 140.0, strength=40, support=139.0, resistance=145.0),
        make_signal("AUDUSD", "BUY", 0.65),
    ]
    drafts = rule_based_suggestions(profile, signals)

    assert [(d.symbol, d.type) for d in drafts] == [("EURUSD", "buy"), ("GBPUSD", "sell"), ("USDJPY", "buy")]
    eurusd = drafts[0]
    assert eurusd.stop_loss < eurusd.entry_price < eurusd.take_profit
    assert eurusd.lot_size == 0.1
    assert eurusd.timeframe == "4h"
    assert eurusd.confidence_score == 80
    assert drafts[1].take_profit < drafts[1].entry_price < drafts[1].stop_loss
    assert drafts[2].confidence_score == 60


def test_parse_ai_suggestions_drops_invalid_items():
    content = json.dumps({"suggestions": [
        {"symbol": "eurusd", "type": "BUY", "entryPrice": 1.08, "stopLoss": 1.07, "takeProfit": 1.1,
         "lotSize": 0.1, "riskScore": 140, "confidenceScore": 70, "reasoning": "Momentum"},
        {"symbol": "GBPUSD", "type": "buy", "reasoning": "no entry"},
    ]})
    drafts = parse_ai_suggestions(content)
    assert len(drafts) == 1
    assert drafts[0].symbol == "EURUSD"
    assert drafts[0].type == "buy"

    assert parse_ai_suggestions("not json") == []
    assert parse_ai_suggestions('{"ideas": []}') == []


async def test_drafts_fall_back_to_rules(monkeypatch):
    monkeypatch.setattr(trade_suggestion_service, "call_ai_with_fallback", _no_ai)
    drafts, provider = await generate_suggestion_drafts(TraderProfile(), [make_signal("EURUSD", "BUY", 1.1)])
    assert provider == "rules"
    assert [d.symbol for d in drafts] == ["EURUSD"]


async def test_drafts_from_ai(monkeypatch):
    async def fake_ai(*args, **kwargs):
        content = {"suggestions": [
            {"symbol": "GBPUSD", "type": "sell", "entryPrice": 1.27, "stopLoss": 1.28, "takeProfit": 1.25,
             "riskScore": 40, "confidenceScore": 65, "reasoning": "Lower highs"},
        ]}
        return json.dumps(content), AIProvider.OPENAI

    monkeypatch.setattr(trade_suggestion_service, "call_ai_with_fallback", fake_ai)
    drafts, provider = await generate_suggestion_drafts(TraderProfile(), [])
    assert provider == "openai"
    assert drafts[0].symbol == "GBPUSD"


async def seed_user_with_trade(session, user_id="s1"):
    session.add(User(id=user_id, email=f"{user_id}@example.com"))
    account = Account(user_id=user_id, name="Main", initial_balance=1000, is_active=True)
    session.add(account)
    await session.commit()
    session.add(Trade(
        account_id=account.id,
        ticket_id="T1",
        open_time=datetime(2024, 3, 4, 9),
        close_time=datetime(2024, 3, 4, 11),
        profit=15.0,
        lots=0.1,
        symbol="EURUSD",
        type="Buy",
    ))
    await session.commit()


async def test_generate_persists_rule_based_suggestions(session):
    await seed_user_with_trade(session)
    svc = TradeSuggestionService(session)

    profile, views, provider = await svc.generate("s1")
    assert provider == "rules"
    assert profile.preferred_symbols == ["EURUSD"]
    assert len(views) == 1
    assert views[0].status == "active"
    assert views[0].valid_until > datetime.utcnow()
    assert views[0].risk_assessment is not None
    assert 1 <= views[0].risk_score <= 100

    stored = await svc.list_suggestions("s1")
    assert [s.id for s in stored] == [views[0].id]


async def test_stale_suggestions_expire(session):
    await seed_user_with_trade(session)
    svc = TradeSuggestionService(session)
    await svc.generate("s1")

    suggestion = (await svc.list_suggestions("s1"))[0]
    suggestion.valid_until = datetime.utcnow() - timedelta(hours=1)
    await session.commit()

    assert await svc.list_active("s1") == []
    await session.refresh(suggestion)
    assert suggestion.status == "expired"


async def test_status_update_and_delete_are_scoped_to_owner(session):
    await seed_user_with_trade(session)
    session.add(User(id="s2", email="s2@example.com"))
    await session.commit()
    svc = TradeSuggestionService(session)
    _, views, _ = await svc.generate("s1")
    suggestion_id = views[0].id

    assert await svc.update_status("s2", suggestion_id, "executed") is None
    assert not await svc.delete("s2", suggestion_id)

    updated = await svc.update_status("s1", suggestion_id, "executed")
    assert updated.status == "executed"
    assert await svc.list_active("s1") == []
    assert await svc.delete("s1", suggestion_id)
    assert await svc.list_suggestions("s1") == []
