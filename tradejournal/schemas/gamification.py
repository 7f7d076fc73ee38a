"""游戏化 schemas"""
import datetime as dt
from typing import Optional

from pydantic import ConfigDict, Field

from tradejournal.schemas.metrics import CamelModel, LevelInfo


class UserStatsView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    current_level: int = 1
    current_points: int = 0
    total_profitable_days: int = 0
    total_risk_control_days: int = 0
    consecutive_profitable_days: int = 0
    account_size: Optional[float] = None
    last_updated: Optional[dt.datetime] = None


class UserStatsResponse(CamelModel):
    stats: UserStatsView
    level: LevelInfo


class UserStatsUpdate(CamelModel):
    current_points: Optional[int] = Field(None, ge=0)
    account_size: Optional[float] = Field(None, ge=0)


class AchievementView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    type: str
    condition: str
    points: int = 0
    icon: Optional[str] = None
    is_unlocked: bool = False
    unlocked_at: Optional[dt.datetime] = None


class DailyProgressView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    daily_profit_target: bool = False
    risk_control: bool = False
    no_overtrading: bool = False
    points_earned: int = 0


class DailyProgressUpdate(CamelModel):
    date: Optional[dt.date] = None
    daily_profit_target: Optional[bool] = None
    risk_control: Optional[bool] = None
    no_overtrading: Optional[bool] = None
