"""等级计算与成就条件判定测试"""
from datetime import date, datetime, timedelta
from types import SimpleNamespace

from tradejournal.engine.gamification import (
    ACHIEVEMENT_CATALOG,
    AchievementCondition,
    EvaluationContext,
    calculate_daily_points,
    calculate_level,
    evaluate_conditions,
)


def make_trade(i, profit, symbol="EURUSD", hour=None, stop_loss=None, take_profit=None, lots=1.0, day=None):
    open_time = datetime.combine(day or date(2024, 3, 4), datetime.min.time()) + timedelta(
        hours=hour if hour is not None else 9, minutes=i
    )
    return SimpleNamespace(
        id=i,
        symbol=symbol,
        open_time=open_time,
        close_time=open_time + timedelta(minutes=30),
        profit=profit,
        lots=lots,
        stop_loss=stop_loss,
        take_profit=take_profit,
    )


def progress(profit=True, risk=True, overtrading=True):
    return SimpleNamespace(daily_profit_target=profit, risk_control=risk, no_overtrading=overtrading)


def test_level_thresholds():
    assert calculate_level(0).current_level == 1
    assert calculate_level(0).progress_percentage == 0
    assert calculate_level(99).current_level == 1

    level = calculate_level(100)
    assert level.current_level == 2
    assert level.points_for_current_level == 100
    assert level.points_for_next_level == 210
    assert level.progress_percentage == 0

    # 100 + 110 + 121
    assert calculate_level(331).current_level == 4


def test_level_is_monotonic_and_clamped():
    levels = [calculate_level(p).current_level for p in range(0, 5000, 37)]
    assert levels == sorted(levels)
    assert calculate_level(-50).current_level == 1
    assert calculate_level(-50).current_points == 0


def test_daily_points():
    assert calculate_daily_points(progress()) == 100
    assert calculate_daily_points(progress(profit=False)) == 50
    assert calculate_daily_points(progress(False, False, False)) == 0


def test_catalog_covers_every_condition():
    assert {d.condition for d in ACHIEVEMENT_CATALOG} == set(AchievementCondition)
    assert len(ACHIEVEMENT_CATALOG) == 25


def test_no_trades_unlock_nothing():
    assert evaluate_conditions(EvaluationContext(trades=[])) == set()


def test_first_trade_and_first_win():
    met = evaluate_conditions(EvaluationContext(trades=[make_trade(0, 12.5)]))
    assert AchievementCondition.FIRST_TRADE in met
    assert AchievementCondition.FIRST_PROFITABLE_TRADE in met
    assert AchievementCondition.TRADES_10 not in met

    met = evaluate_conditions(EvaluationContext(trades=[make_trade(0, -3)]))
    assert AchievementCondition.FIRST_TRADE in met
    assert AchievementCondition.FIRST_PROFITABLE_TRADE not in met


def test_winning_streak_uses_open_time_order():
    # 列表顺序打乱，按开仓时间是 赢赢赢输
    trades = [make_trade(3, -1), make_trade(0, 5), make_trade(2, 5), make_trade(1, 5)]
    met = evaluate_conditions(EvaluationContext(trades=trades))
    assert AchievementCondition.WINNING_STREAK_3 in met
    assert AchievementCondition.WINNING_STREAK_5 not in met


def test_win_rate_requires_minimum_sample():
    wins = [make_trade(i, 10) for i in range(19)]
    assert AchievementCondition.WIN_RATE_60 not in evaluate_conditions(EvaluationContext(trades=wins))

    trades = [make_trade(i, 10) for i in range(12)] + [make_trade(12 + i, -5) for i in range(8)]
    met = evaluate_conditions(EvaluationContext(trades=trades))
    assert AchievementCondition.WIN_RATE_60 in met
    assert AchievementCondition.WIN_RATE_70 not in met
    assert AchievementCondition.TRADES_10 in met


def test_stop_loss_discipline_needs_ten_recent_trades():
    trades = [make_trade(i, 1, stop_loss=1.0) for i in range(10)]
    assert AchievementCondition.STOP_LOSS_DISCIPLINE in evaluate_conditions(EvaluationContext(trades=trades))

    trades.append(make_trade(20, 1, stop_loss=None))
    assert AchievementCondition.STOP_LOSS_DISCIPLINE not in evaluate_conditions(EvaluationContext(trades=trades))


def test_diversification_conditions():
    symbols = ["EURUSD", "GBPUSD", "USDJPY", "AUDUSD", "XAUUSD"]
    trades = [make_trade(i, 5, symbol=s, hour=[1, 7, 13, 19, 20][i]) for i, s in enumerate(symbols)]
    met = evaluate_conditions(EvaluationContext(trades=trades))
    assert AchievementCondition.DIVERSIFIED_TRADING in met
    assert AchievementCondition.TIME_DIVERSIFICATION in met


def test_consecutive_calendar_days():
    trades = [make_trade(i, 1, day=date(2024, 3, 1) + timedelta(days=i)) for i in range(7)]
    assert AchievementCondition.DAILY_TRADING_WEEK in evaluate_conditions(EvaluationContext(trades=trades))

    del trades[3]
    assert AchievementCondition.DAILY_TRADING_WEEK not in evaluate_conditions(EvaluationContext(trades=trades))


def test_profitable_week_ignores_current_week():
    today = date(2024, 3, 6)
    this_week = [make_trade(0, 50, day=date(2024, 3, 5))]
    met = evaluate_conditions(EvaluationContext(trades=this_week, today=today))
    assert AchievementCondition.FIRST_PROFITABLE_DAY in met
    assert AchievementCondition.PROFITABLE_WEEK not in met

    last_week = [make_trade(0, 50, day=date(2024, 2, 27))]
    met = evaluate_conditions(EvaluationContext(trades=last_week, today=today))
    assert AchievementCondition.PROFITABLE_WEEK in met
    assert AchievementCondition.PROFITABLE_MONTH in met


def test_day_streaks_stop_at_first_break():
    trades = [make_trade(0, 1)]
    rows = [progress()] * 5 + [progress(profit=False)] + [progress()] * 4
    met = evaluate_conditions(EvaluationContext(trades=trades, daily_progress=rows))
    assert AchievementCondition.PROFITABLE_STREAK_5 in met
    assert AchievementCondition.PROFITABLE_DAYS_7 not in met
    assert AchievementCondition.RISK_CONTROL_10_DAYS in met

    rows = [progress(profit=False)] + [progress()] * 9
    met = evaluate_conditions(EvaluationContext(trades=trades, daily_progress=rows))
    assert AchievementCondition.PROFITABLE_STREAK_5 not in met


def test_perfect_week():
    trades = [make_trade(0, 1)]
    met = evaluate_conditions(EvaluationContext(trades=trades, daily_progress=[progress()] * 7))
    assert AchievementCondition.PERFECT_WEEK in met

    rows = [progress()] * 6 + [progress(overtrading=False)]
    met = evaluate_conditions(EvaluationContext(trades=trades, daily_progress=rows))
    assert AchievementCondition.PERFECT_WEEK not in met
