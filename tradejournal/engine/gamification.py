"""
游戏化引擎 - 等级计算与成就条件判定

- calculate_level: 积分 -> 等级/进度（每级所需积分递增 10%）
- calculate_daily_points: 每日进度 -> 当日积分
- evaluate_conditions: 交易 + 每日进度历史 -> 当前满足的成就条件集合

成就条件是封闭的枚举，每个条件对应一个判定函数，模块加载时校验注册表覆盖全部条件。
本模块只做判定，解锁与加分由 GamificationService 负责。
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Dict, List, Sequence, Set

from tradejournal.engine.metrics_aggregator import is_closed, loss_percent_of_exposure, sort_by_open_time
from tradejournal.schemas.metrics import LevelInfo

BASE_LEVEL_POINTS = 100
LEVEL_GROWTH = 1.1

DAILY_PROFIT_TARGET_POINTS = 50
DAILY_RISK_CONTROL_POINTS = 30
DAILY_NO_OVERTRADING_POINTS = 20


def calculate_level(points: int) -> LevelInfo:
    points = max(int(points or 0), 0)
    level = 1
    points_required = BASE_LEVEL_POINTS
    total_for_level = 0

    while points >= total_for_level + points_required:
        total_for_level += points_required
        level += 1
        points_required = int(points_required * LEVEL_GROWTH)

    return LevelInfo(
        current_level=level,
        current_points=points,
        points_for_current_level=total_for_level,
        points_for_next_level=total_for_level + points_required,
        progress_percentage=(points - total_for_level) / points_required * 100,
    )


def calculate_daily_points(progress) -> int:
    points = 0
    if progress.daily_profit_target:
        points += DAILY_PROFIT_TARGET_POINTS
    if progress.risk_control:
        points += DAILY_RISK_CONTROL_POINTS
    if progress.no_overtrading:
        points += DAILY_NO_OVERTRADING_POINTS
    return points


class AchievementType(str, Enum):
    MILESTONE = "milestone"
    PERFORMANCE = "performance"
    STREAK = "streak"
    RISK_MANAGEMENT = "risk_management"
    CONSISTENCY = "consistency"
    PROFIT = "profit"
    ADVANCED = "advanced"


class AchievementCondition(str, Enum):
    FIRST_TRADE = "first_trade"
    TRADES_10 = "trades_10"
    TRADES_50 = "trades_50"
    TRADES_100 = "trades_100"
    FIRST_PROFITABLE_TRADE = "first_profitable_trade"
    WIN_RATE_60 = "win_rate_60"
    WIN_RATE_70 = "win_rate_70"
    PROFIT_FACTOR_1_5 = "profit_factor_1_5"
    WINNING_STREAK_3 = "winning_streak_3"
    WINNING_STREAK_5 = "winning_streak_5"
    WINNING_STREAK_10 = "winning_streak_10"
    STOP_LOSS_DISCIPLINE = "stop_loss_discipline"
    TAKE_PROFIT_DISCIPLINE = "take_profit_discipline"
    LOSS_CONTROL = "loss_control"
    DAILY_TRADING_WEEK = "daily_trading_week"
    MONTHLY_ACTIVE_TRADER = "monthly_active_trader"
    FIRST_PROFITABLE_DAY = "first_profitable_day"
    PROFITABLE_WEEK = "profitable_week"
    PROFITABLE_MONTH = "profitable_month"
    PROFITABLE_STREAK_5 = "profitable_streak_5"
    PROFITABLE_DAYS_7 = "profitable_days_7"
    RISK_CONTROL_10_DAYS = "risk_control_10_days"
    PERFECT_WEEK = "perfect_week"
    DIVERSIFIED_TRADING = "diversified_trading"
    TIME_DIVERSIFICATION = "time_diversification"


@dataclass(frozen=True)
class AchievementDefinition:
    condition: AchievementCondition
    name: str
    description: str
    type: AchievementType
    points: int
    icon: str


ACHIEVEMENT_CATALOG: List[AchievementDefinition] = [
    AchievementDefinition(AchievementCondition.FIRST_TRADE, "First Trade",
                          "Record your first trade", AchievementType.MILESTONE, 50, "target"),
    AchievementDefinition(AchievementCondition.TRADES_10, "10 Trades",
                          "Reach 10 recorded trades", AchievementType.MILESTONE, 100, "trophy"),
    AchievementDefinition(AchievementCondition.TRADES_50, "50 Trades",
                          "Reach 50 recorded trades", AchievementType.MILESTONE, 250, "medal"),
    AchievementDefinition(AchievementCondition.TRADES_100, "100 Trades",
                          "Reach 100 recorded trades", AchievementType.MILESTONE, 500, "crown"),
    AchievementDefinition(AchievementCondition.FIRST_PROFITABLE_TRADE, "First Win",
                          "Close your first profitable trade", AchievementType.PERFORMANCE, 75, "trending-up"),
    AchievementDefinition(AchievementCondition.WIN_RATE_60, "Win Rate 60%",
                          "Hold a 60% win rate or better (at least 20 closed trades)",
                          AchievementType.PERFORMANCE, 300, "target"),
    AchievementDefinition(AchievementCondition.WIN_RATE_70, "Win Rate 70%",
                          "Hold a 70% win rate or better (at least 30 closed trades)",
                          AchievementType.PERFORMANCE, 500, "star"),
    AchievementDefinition(AchievementCondition.PROFIT_FACTOR_1_5, "Profit Factor 1.5",
                          "Reach a profit factor of 1.5 or higher (at least 10 closed trades)",
                          AchievementType.PERFORMANCE, 400, "trending-up"),
    AchievementDefinition(AchievementCondition.WINNING_STREAK_3, "Streak of 3",
                          "Win 3 trades in a row", AchievementType.STREAK, 150, "flame"),
    AchievementDefinition(AchievementCondition.WINNING_STREAK_5, "Streak of 5",
                          "Win 5 trades in a row", AchievementType.STREAK, 300, "fire"),
    AchievementDefinition(AchievementCondition.WINNING_STREAK_10, "Streak of 10",
                          "Win 10 trades in a row", AchievementType.STREAK, 750, "zap"),
    AchievementDefinition(AchievementCondition.STOP_LOSS_DISCIPLINE, "Risk Control",
                          "Use a stop loss on your last 10 trades", AchievementType.RISK_MANAGEMENT, 200, "shield"),
    AchievementDefinition(AchievementCondition.TAKE_PROFIT_DISCIPLINE, "Take Profit Discipline",
                          "Use a take profit on your last 15 trades", AchievementType.RISK_MANAGEMENT, 250, "target"),
    AchievementDefinition(AchievementCondition.LOSS_CONTROL, "Loss Management",
                          "Keep every loss under 2% of exposure over your last 20 closed trades",
                          AchievementType.RISK_MANAGEMENT, 350, "shield-check"),
    AchievementDefinition(AchievementCondition.DAILY_TRADING_WEEK, "Consistent Trader",
                          "Trade on 7 consecutive calendar days", AchievementType.CONSISTENCY, 300, "calendar"),
    AchievementDefinition(AchievementCondition.MONTHLY_ACTIVE_TRADER, "Monthly Trader",
                          "Trade on at least 20 days within one month", AchievementType.CONSISTENCY, 500,
                          "calendar-days"),
    AchievementDefinition(AchievementCondition.FIRST_PROFITABLE_DAY, "First Profitable Day",
                          "Finish a trading day in profit", AchievementType.PROFIT, 100, "dollar-sign"),
    AchievementDefinition(AchievementCondition.PROFITABLE_WEEK, "Profitable Week",
                          "Finish a full week in profit", AchievementType.PROFIT, 250, "trending-up"),
    AchievementDefinition(AchievementCondition.PROFITABLE_MONTH, "Profitable Month",
                          "Finish a full month in profit", AchievementType.PROFIT, 500, "chart-line"),
    AchievementDefinition(AchievementCondition.PROFITABLE_STREAK_5, "Five Green Days",
                          "Hit the daily profit target on your 5 most recent trading days",
                          AchievementType.CONSISTENCY, 200, "flame"),
    AchievementDefinition(AchievementCondition.PROFITABLE_DAYS_7, "Seven Green Days",
                          "Hit the daily profit target on your 7 most recent trading days",
                          AchievementType.CONSISTENCY, 300, "sun"),
    AchievementDefinition(AchievementCondition.RISK_CONTROL_10_DAYS, "Ten Disciplined Days",
                          "Respect the 1% risk rule on your 10 most recent trading days",
                          AchievementType.RISK_MANAGEMENT, 300, "shield"),
    AchievementDefinition(AchievementCondition.PERFECT_WEEK, "Perfect Week",
                          "Meet every daily goal on your 7 most recent trading days",
                          AchievementType.CONSISTENCY, 500, "award"),
    AchievementDefinition(AchievementCondition.DIVERSIFIED_TRADING, "Diversification",
                          "Trade at least 5 different instruments", AchievementType.ADVANCED, 300, "globe"),
    AchievementDefinition(AchievementCondition.TIME_DIVERSIFICATION, "Around the Clock",
                          "Win trades in at least 3 different sessions of the day", AchievementType.ADVANCED, 200,
                          "clock"),
]

CATALOG_BY_CONDITION: Dict[AchievementCondition, AchievementDefinition] = {
    d.condition: d for d in ACHIEVEMENT_CATALOG
}


@dataclass
class EvaluationContext:
    """trades 顺序任意；daily_progress 按日期倒序（最近一天在前）"""
    trades: Sequence
    daily_progress: Sequence = field(default_factory=list)
    today: date = field(default_factory=date.today)

    @property
    def closed(self) -> list:
        return [t for t in self.trades if is_closed(t)]

    def most_recent(self, count: int, closed_only: bool = False) -> list:
        pool = self.closed if closed_only else list(self.trades)
        return list(reversed(sort_by_open_time(pool)))[:count]


# ---- 判定辅助 ----

def _is_win(trade) -> bool:
    # 成就口径：原始 profit > 0，不计手续费与隔夜利息
    return (trade.profit or 0.0) > 0


def _max_win_streak(trades: Sequence) -> int:
    best = current = 0
    for trade in sort_by_open_time(trades):
        if _is_win(trade):
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def _leading_run(rows: Sequence, predicate: Callable) -> int:
    run = 0
    for row in rows:
        if not predicate(row):
            break
        run += 1
    return run


def _win_rate_at_least(ctx: EvaluationContext, min_trades: int, min_rate: float) -> bool:
    closed = ctx.closed
    if len(closed) < min_trades:
        return False
    wins = sum(1 for t in closed if _is_win(t))
    return wins / len(closed) * 100 >= min_rate


def _profit_by(trades: Sequence, key: Callable) -> Dict:
    totals: Dict = {}
    for trade in trades:
        k = key(trade)
        totals[k] = totals.get(k, 0.0) + (trade.profit or 0.0)
    return totals


# ---- 各条件判定 ----

def _first_trade(ctx):
    return len(ctx.trades) >= 1


def _trades_10(ctx):
    return len(ctx.trades) >= 10


def _trades_50(ctx):
    return len(ctx.trades) >= 50


def _trades_100(ctx):
    return len(ctx.trades) >= 100


def _first_profitable_trade(ctx):
    return any(_is_win(t) for t in ctx.closed)


def _win_rate_60(ctx):
    return _win_rate_at_least(ctx, 20, 60.0)


def _win_rate_70(ctx):
    return _win_rate_at_least(ctx, 30, 70.0)


def _profit_factor_1_5(ctx):
    closed = ctx.closed
    if len(closed) < 10:
        return False
    gross_profit = sum(t.profit for t in closed if t.profit > 0)
    gross_loss = abs(sum(t.profit for t in closed if t.profit < 0))
    if gross_loss == 0:
        return False
    return gross_profit / gross_loss >= 1.5


def _winning_streak_3(ctx):
    return _max_win_streak(ctx.closed) >= 3


def _winning_streak_5(ctx):
    return _max_win_streak(ctx.closed) >= 5


def _winning_streak_10(ctx):
    return _max_win_streak(ctx.closed) >= 10


def _stop_loss_discipline(ctx):
    recent = ctx.most_recent(10)
    return len(recent) == 10 and all(t.stop_loss is not None for t in recent)


def _take_profit_discipline(ctx):
    recent = ctx.most_recent(15)
    return len(recent) == 15 and all(t.take_profit is not None for t in recent)


def _loss_control(ctx):
    recent = ctx.most_recent(20, closed_only=True)
    return len(recent) == 20 and all(loss_percent_of_exposure(t) < 2.0 for t in recent)


def _daily_trading_week(ctx):
    days = sorted({t.open_time.date() for t in ctx.trades})
    run = best = 0
    previous = None
    for day in days:
        run = run + 1 if previous and day - previous == timedelta(days=1) else 1
        best = max(best, run)
        previous = day
    return best >= 7


def _monthly_active_trader(ctx):
    per_month: Dict[str, Set[date]] = {}
    for trade in ctx.trades:
        per_month.setdefault(trade.open_time.strftime("%Y-%m"), set()).add(trade.open_time.date())
    return any(len(days) >= 20 for days in per_month.values())


def _first_profitable_day(ctx):
    totals = _profit_by(ctx.closed, lambda t: t.close_time.date())
    return any(v > 0 for v in totals.values())


def _profitable_week(ctx):
    current_week = ctx.today.isocalendar()[:2]
    totals = _profit_by(ctx.closed, lambda t: t.close_time.isocalendar()[:2])
    return any(v > 0 for week, v in totals.items() if week < current_week)


def _profitable_month(ctx):
    current_month = (ctx.today.year, ctx.today.month)
    totals = _profit_by(ctx.closed, lambda t: (t.close_time.year, t.close_time.month))
    return any(v > 0 for month, v in totals.items() if month < current_month)


def _profitable_streak_5(ctx):
    return _leading_run(ctx.daily_progress[:10], lambda d: d.daily_profit_target) >= 5


def _profitable_days_7(ctx):
    return _leading_run(ctx.daily_progress[:10], lambda d: d.daily_profit_target) >= 7


def _risk_control_10_days(ctx):
    return _leading_run(ctx.daily_progress[:10], lambda d: d.risk_control) >= 10


def _perfect_week(ctx):
    last_week = list(ctx.daily_progress[:7])
    return len(last_week) >= 7 and all(
        d.daily_profit_target and d.risk_control and d.no_overtrading for d in last_week
    )


def _diversified_trading(ctx):
    return len({t.symbol for t in ctx.trades}) >= 5


def _time_diversification(ctx):
    # 一天分四个 6 小时时段
    sessions = {t.open_time.hour // 6 for t in ctx.closed if _is_win(t)}
    return len(sessions) >= 3


CONDITION_EVALUATORS: Dict[AchievementCondition, Callable[[EvaluationContext], bool]] = {
    AchievementCondition.FIRST_TRADE: _first_trade,
    AchievementCondition.TRADES_10: _trades_10,
    AchievementCondition.TRADES_50: _trades_50,
    AchievementCondition.TRADES_100: _trades_100,
    AchievementCondition.FIRST_PROFITABLE_TRADE: _first_profitable_trade,
    AchievementCondition.WIN_RATE_60: _win_rate_60,
    AchievementCondition.WIN_RATE_70: _win_rate_70,
    AchievementCondition.PROFIT_FACTOR_1_5: _profit_factor_1_5,
    AchievementCondition.WINNING_STREAK_3: _winning_streak_3,
    AchievementCondition.WINNING_STREAK_5: _winning_streak_5,
    AchievementCondition.WINNING_STREAK_10: _winning_streak_10,
    AchievementCondition.STOP_LOSS_DISCIPLINE: _stop_loss_discipline,
    AchievementCondition.TAKE_PROFIT_DISCIPLINE: _take_profit_discipline,
    AchievementCondition.LOSS_CONTROL: _loss_control,
    AchievementCondition.DAILY_TRADING_WEEK: _daily_trading_week,
    AchievementCondition.MONTHLY_ACTIVE_TRADER: _monthly_active_trader,
    AchievementCondition.FIRST_PROFITABLE_DAY: _first_profitable_day,
    AchievementCondition.PROFITABLE_WEEK: _profitable_week,
    AchievementCondition.PROFITABLE_MONTH: _profitable_month,
    AchievementCondition.PROFITABLE_STREAK_5: _profitable_streak_5,
    AchievementCondition.PROFITABLE_DAYS_7: _profitable_days_7,
    AchievementCondition.RISK_CONTROL_10_DAYS: _risk_control_10_days,
    AchievementCondition.PERFECT_WEEK: _perfect_week,
    AchievementCondition.DIVERSIFIED_TRADING: _diversified_trading,
    AchievementCondition.TIME_DIVERSIFICATION: _time_diversification,
}

if set(AchievementCondition) != set(CONDITION_EVALUATORS) or set(AchievementCondition) != set(CATALOG_BY_CONDITION):
    raise RuntimeError("Every achievement condition needs an evaluator and a catalog entry")


def evaluate_conditions(ctx: EvaluationContext) -> Set[AchievementCondition]:
    """返回当前满足的全部成就条件"""
    return {condition for condition, evaluator in CONDITION_EVALUATORS.items() if evaluator(ctx)}
