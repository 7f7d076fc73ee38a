"""交易指标 / 等级 schemas（前端使用 camelCase 字段）"""
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


class SymbolPerformance(CamelModel):
    symbol: str
    profit: float = 0.0
    trades: int = 0
    win_rate: float = 0.0


class MonthlyPerformance(CamelModel):
    month: str
    profit: float = 0.0
    trades: int = 0


class DailyPerformance(CamelModel):
    date: str
    profit: float = 0.0
    trades: int = 0


class TradingMetrics(CamelModel):
    total_profit: float = 0.0
    total_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    risk_reward_ratio: float = 0.0
    profit_factor: float = 0.0
    max_drawdown: float = 0.0
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    trading_days: int = 0
    avg_trades_per_day: float = 0.0
    symbol_performance: list[SymbolPerformance] = []
    monthly_performance: list[MonthlyPerformance] = []
    daily_performance: list[DailyPerformance] = []


class LevelInfo(CamelModel):
    current_level: int = 1
    current_points: int = 0
    points_for_current_level: int = 0
    points_for_next_level: int = 100
    progress_percentage: float = 0.0


class MetricsSummary(CamelModel):
    """仪表盘汇总：指标 + 等级 + 账户概况"""
    metrics: TradingMetrics
    level: LevelInfo
    initial_balance: float = 0.0
    current_balance: float = 0.0
    open_trades: int = 0
    account_id: Optional[int] = None


class EquityPoint(CamelModel):
    trade_id: Optional[int] = None
    date: str
    symbol: str
    profit: float
    cumulative_profit: float
    equity: float


class CalendarDay(CamelModel):
    date: str
    trades: int = 0
    profit: float = 0.0
    winners: int = 0
    win_rate: float = 0.0


class DailyProgressFlags(CamelModel):
    daily_profit_target: bool = False
    risk_control: bool = True
    no_overtrading: bool = True
