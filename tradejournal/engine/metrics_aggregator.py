"""
交易指标聚合器 - 纯函数，无 I/O

输入任意顺序的交易列表，输出仪表盘/报告所需的汇总指标：
- 胜率、平均盈亏、风险回报比、盈利因子
- 最大回撤、最长连胜/连亏
- 按品种 / 月份 / 日期的分组统计

所有除法在分母为 0 时返回 0，空列表返回全零结果。
"""
from collections import OrderedDict
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from tradejournal.schemas.metrics import (
    CalendarDay,
    DailyPerformance,
    DailyProgressFlags,
    EquityPoint,
    MonthlyPerformance,
    SymbolPerformance,
    TradingMetrics,
)

# 风控：单笔亏损不超过名义敞口的 1%（1 标准手 = 100000 基础货币）
CONTRACT_SIZE = 100000
MAX_LOSS_PERCENT_PER_TRADE = 1.0
MAX_TRADES_PER_DAY = 5


def _safe_div(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def net_profit(trade) -> float:
    return (trade.profit or 0.0) + (trade.commission or 0.0) + (trade.swap or 0.0)


def is_closed(trade) -> bool:
    return trade.close_time is not None and trade.profit is not None


def sort_by_open_time(trades: Iterable) -> list:
    # sorted() 是稳定排序，同一时间的交易保持原顺序
    return sorted(trades, key=lambda t: t.open_time or datetime.min)


def calculate_trading_metrics(trades: Sequence) -> TradingMetrics:
    closed = sort_by_open_time(t for t in trades if is_closed(t))
    if not closed:
        return TradingMetrics()

    nets = [net_profit(t) for t in closed]
    total_trades = len(closed)
    total_profit = sum(nets)

    winners = [t for t, n in zip(closed, nets) if n > 0]
    losers = [t for t, n in zip(closed, nets) if n < 0]

    win_rate = _safe_div(len(winners), total_trades) * 100
    avg_win = _safe_div(sum(t.profit for t in winners), len(winners))
    avg_loss = abs(_safe_div(sum(t.profit for t in losers), len(losers)))
    risk_reward_ratio = _safe_div(avg_win, avg_loss)

    gross_profit = sum(t.profit for t in winners)
    gross_loss = abs(sum(t.profit for t in losers))
    profit_factor = _safe_div(gross_profit, gross_loss)

    # 回撤与连胜/连亏：按开仓时间顺序单次遍历
    running = 0.0
    peak = 0.0
    max_drawdown = 0.0
    win_streak = loss_streak = 0
    max_wins = max_losses = 0
    for n in nets:
        running += n
        peak = max(peak, running)
        max_drawdown = max(max_drawdown, peak - running)

        if n > 0:
            win_streak += 1
            loss_streak = 0
        elif n < 0:
            loss_streak += 1
            win_streak = 0
        else:
            win_streak = loss_streak = 0
        max_wins = max(max_wins, win_streak)
        max_losses = max(max_losses, loss_streak)

    trading_days = len({t.open_time.date() for t in closed})
    avg_trades_per_day = _safe_div(total_trades, trading_days)

    return TradingMetrics(
        total_profit=total_profit,
        total_trades=total_trades,
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        risk_reward_ratio=risk_reward_ratio,
        profit_factor=profit_factor,
        max_drawdown=max_drawdown,
        consecutive_wins=max_wins,
        consecutive_losses=max_losses,
        trading_days=trading_days,
        avg_trades_per_day=avg_trades_per_day,
        symbol_performance=_symbol_breakdown(closed, nets),
        monthly_performance=_monthly_breakdown(closed, nets),
        daily_performance=_daily_breakdown(closed, nets),
    )


def _symbol_breakdown(closed: list, nets: List[float]) -> List[SymbolPerformance]:
    stats: dict = {}
    for trade, n in zip(closed, nets):
        s = stats.setdefault(trade.symbol, {"profit": 0.0, "trades": 0, "wins": 0})
        s["profit"] += n
        s["trades"] += 1
        if n > 0:
            s["wins"] += 1

    rows = [
        SymbolPerformance(
            symbol=symbol,
            profit=s["profit"],
            trades=s["trades"],
            win_rate=_safe_div(s["wins"], s["trades"]) * 100,
        )
        for symbol, s in stats.items()
    ]
    rows.sort(key=lambda r: r.profit, reverse=True)
    return rows


def _monthly_breakdown(closed: list, nets: List[float]) -> List[MonthlyPerformance]:
    stats: dict = {}
    for trade, n in zip(closed, nets):
        key = trade.open_time.strftime("%Y-%m")
        s = stats.setdefault(key, {"profit": 0.0, "trades": 0})
        s["profit"] += n
        s["trades"] += 1
    return [MonthlyPerformance(month=k, **stats[k]) for k in sorted(stats)]


def _daily_breakdown(closed: list, nets: List[float]) -> List[DailyPerformance]:
    stats: dict = {}
    for trade, n in zip(closed, nets):
        key = trade.open_time.strftime("%Y-%m-%d")
        s = stats.setdefault(key, {"profit": 0.0, "trades": 0})
        s["profit"] += n
        s["trades"] += 1
    return [DailyPerformance(date=k, **stats[k]) for k in sorted(stats)]


def loss_percent_of_exposure(trade) -> float:
    """单笔亏损占名义敞口的百分比；盈利或持平返回 0，手数为 0 的亏损视为无限大"""
    profit = trade.profit or 0.0
    if profit >= 0:
        return 0.0
    exposure = (trade.lots or 0.0) * CONTRACT_SIZE
    if exposure <= 0:
        return float("inf")
    return abs(profit) / exposure * 100


def calculate_daily_progress(trades: Sequence, day: date) -> DailyProgressFlags:
    """根据当天平仓的交易计算每日进度标志"""
    day_trades = [t for t in trades if t.close_time is not None and t.close_time.date() == day]
    if not day_trades:
        return DailyProgressFlags()

    daily_profit = sum(t.profit or 0.0 for t in day_trades)
    max_loss_percent = max(loss_percent_of_exposure(t) for t in day_trades)
    return DailyProgressFlags(
        daily_profit_target=daily_profit > 0,
        risk_control=max_loss_percent <= MAX_LOSS_PERCENT_PER_TRADE,
        no_overtrading=len(day_trades) <= MAX_TRADES_PER_DAY,
    )


def build_equity_curve(trades: Sequence, initial_balance: float = 0.0) -> List[EquityPoint]:
    """资金曲线：按平仓时间累计净盈亏"""
    closed = sorted(
        (t for t in trades if is_closed(t)),
        key=lambda t: t.close_time or t.open_time,
    )
    points: List[EquityPoint] = []
    cumulative = 0.0
    for trade in closed:
        n = net_profit(trade)
        cumulative += n
        points.append(EquityPoint(
            trade_id=getattr(trade, "id", None),
            date=(trade.close_time or trade.open_time).strftime("%Y-%m-%d"),
            symbol=trade.symbol,
            profit=n,
            cumulative_profit=cumulative,
            equity=initial_balance + cumulative,
        ))
    return points


def build_calendar(trades: Sequence, month: Optional[str] = None) -> List[CalendarDay]:
    """交易日历：按平仓日期汇总，可选按 YYYY-MM 过滤"""
    stats: "OrderedDict[str, dict]" = OrderedDict()
    for trade in sorted((t for t in trades if is_closed(t)), key=lambda t: t.close_time):
        key = trade.close_time.strftime("%Y-%m-%d")
        if month and not key.startswith(month):
            continue
        n = net_profit(trade)
        s = stats.setdefault(key, {"trades": 0, "profit": 0.0, "winners": 0})
        s["trades"] += 1
        s["profit"] += n
        if n > 0:
            s["winners"] += 1

    return [
        CalendarDay(
            date=k,
            trades=s["trades"],
            profit=s["profit"],
            winners=s["winners"],
            win_rate=_safe_div(s["winners"], s["trades"]) * 100,
        )
        for k, s in stats.items()
    ]
