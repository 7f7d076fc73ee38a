"""交易指标聚合测试"""
import math
from datetime import date, datetime, timedelta
from types import SimpleNamespace

from tradejournal.engine.metrics_aggregator import (
    build_calendar,
    build_equity_curve,
    calculate_daily_progress,
    calculate_trading_metrics,
    loss_percent_of_exposure,
)

START = datetime(2024, 3, 4, 9, 0)


def make_trade(i, profit, symbol="EURUSD", closed=True, lots=0.1, commission=0.0, swap=0.0, open_time=None):
    open_time = open_time or START + timedelta(hours=i)
    return SimpleNamespace(
        id=i,
        symbol=symbol,
        open_time=open_time,
        close_time=open_time + timedelta(minutes=30) if closed else None,
        profit=profit if closed else None,
        lots=lots,
        commission=commission,
        swap=swap,
    )


def test_empty_trades_give_zero_metrics():
    metrics = calculate_trading_metrics([])
    assert metrics.total_trades == 0
    assert metrics.win_rate == 0
    assert metrics.profit_factor == 0
    assert metrics.max_drawdown == 0
    assert metrics.symbol_performance == []


def test_win_loss_streaks_and_ratios():
    trades = [make_trade(i, p) for i, p in enumerate([10, -5, 10, 10, -5])]
    metrics = calculate_trading_metrics(trades)

    assert metrics.total_trades == 5
    assert metrics.total_profit == 20
    assert metrics.win_rate == 60
    assert metrics.avg_win == 10
    assert metrics.avg_loss == 5
    assert metrics.risk_reward_ratio == 2
    assert metrics.profit_factor == 3
    assert metrics.consecutive_wins == 2
    assert metrics.consecutive_losses == 1
    assert metrics.max_drawdown == 5


def test_input_order_does_not_matter():
    trades = [make_trade(i, p) for i, p in enumerate([10, -5, 10, 10, -5])]
    shuffled = [trades[3], trades[0], trades[4], trades[1], trades[2]]
    assert calculate_trading_metrics(shuffled) == calculate_trading_metrics(trades)


def test_increasing_equity_has_no_drawdown():
    trades = [make_trade(i, p) for i, p in enumerate([5, 1, 3, 8])]
    metrics = calculate_trading_metrics(trades)
    assert metrics.max_drawdown == 0
    assert metrics.consecutive_losses == 0
    # 没有亏损时盈利因子按约定为 0
    assert metrics.profit_factor == 0


def test_open_trades_are_excluded():
    trades = [make_trade(0, 10), make_trade(1, None, closed=False), make_trade(2, -4)]
    metrics = calculate_trading_metrics(trades)
    assert metrics.total_trades == 2
    assert metrics.total_profit == 6


def test_net_profit_includes_commission_and_swap():
    trades = [make_trade(0, 10, commission=-2, swap=-1)]
    metrics = calculate_trading_metrics(trades)
    assert metrics.total_profit == 7


def test_gross_profit_only_counts_net_winners():
    # 原始盈利为正但扣除手续费后为亏损，不计入 gross profit
    trades = [make_trade(0, 10, commission=-15), make_trade(1, -10)]
    metrics = calculate_trading_metrics(trades)
    assert metrics.win_rate == 0
    assert metrics.profit_factor == 0


def test_all_values_are_finite():
    trades = [make_trade(i, p) for i, p in enumerate([0, 0, 0])]
    metrics = calculate_trading_metrics(trades)
    for name, value in metrics.model_dump().items():
        if isinstance(value, float):
            assert math.isfinite(value), name
    assert metrics.win_rate == 0


def test_symbol_breakdown_sorted_by_profit():
    trades = [
        make_trade(0, 5, symbol="GBPUSD"),
        make_trade(1, 20, symbol="EURUSD"),
        make_trade(2, -3, symbol="USDJPY"),
    ]
    metrics = calculate_trading_metrics(trades)
    assert [s.symbol for s in metrics.symbol_performance] == ["EURUSD", "GBPUSD", "USDJPY"]
    assert metrics.symbol_performance[0].win_rate == 100


def test_trading_days_and_average():
    trades = [
        make_trade(0, 5, open_time=datetime(2024, 3, 4, 9)),
        make_trade(1, 5, open_time=datetime(2024, 3, 4, 10)),
        make_trade(2, 5, open_time=datetime(2024, 3, 5, 9)),
    ]
    metrics = calculate_trading_metrics(trades)
    assert metrics.trading_days == 2
    assert metrics.avg_trades_per_day == 1.5
    assert [d.date for d in metrics.daily_performance] == ["2024-03-04", "2024-03-05"]
    assert metrics.monthly_performance[0].month == "2024-03"


def test_loss_percent_of_exposure():
    assert loss_percent_of_exposure(make_trade(0, 50)) == 0
    # 0.1 手 = 10000 敞口，亏损 100 = 1%
    assert loss_percent_of_exposure(make_trade(0, -100, lots=0.1)) == 1.0
    assert loss_percent_of_exposure(make_trade(0, -1, lots=0)) == float("inf")


def test_daily_progress_flags():
    day = date(2024, 3, 4)
    trades = [make_trade(0, 30), make_trade(1, -50, lots=0.1)]
    flags = calculate_daily_progress(trades, day)
    assert not flags.daily_profit_target
    assert flags.risk_control
    assert flags.no_overtrading

    overtrading = [make_trade(i, 1) for i in range(6)]
    flags = calculate_daily_progress(overtrading, day)
    assert flags.daily_profit_target
    assert not flags.no_overtrading

    assert not calculate_daily_progress(trades, date(2024, 3, 10)).daily_profit_target


def test_equity_curve_and_calendar():
    trades = [make_trade(0, 10), make_trade(1, -4), make_trade(2, None, closed=False)]
    curve = build_equity_curve(trades, initial_balance=1000)
    assert [p.cumulative_profit for p in curve] == [10, 6]
    assert curve[-1].equity == 1006

    calendar = build_calendar(trades, month="2024-03")
    assert len(calendar) == 1
    assert calendar[0].trades == 2
    assert calendar[0].winners == 1
    assert calendar[0].win_rate == 50
    assert build_calendar(trades, month="2024-04") == []
