"""游戏化模型：用户积分统计、成就、每日进度"""
from sqlalchemy import (
    Boolean, Column, Date, DateTime, DECIMAL, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text,
)

from tradejournal.models.db import Base


class UserStats(Base):
    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    current_level = Column(Integer, nullable=False, default=1)
    current_points = Column(Integer, nullable=False, default=0)
    total_profitable_days = Column(Integer, nullable=False, default=0)
    total_risk_control_days = Column(Integer, nullable=False, default=0)
    consecutive_profitable_days = Column(Integer, nullable=False, default=0)
    account_size = Column(DECIMAL(20, 2), nullable=True)
    last_updated = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=text("CURRENT_TIMESTAMP"))


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(32), nullable=False)
    condition = Column(String(64), nullable=False)
    points = Column(Integer, nullable=False, default=0)
    icon = Column(String(16), nullable=True)
    is_unlocked = Column(Boolean, nullable=False, default=False)
    unlocked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        UniqueConstraint("user_id", "condition", name="uq_achievement_user_condition"),
    )


class DailyProgress(Base):
    __tablename__ = "daily_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    daily_profit_target = Column(Boolean, nullable=False, default=False)
    risk_control = Column(Boolean, nullable=False, default=False)
    no_overtrading = Column(Boolean, nullable=False, default=False)
    points_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_progress_user_date"),
        Index("idx_daily_progress_user_date", "user_id", "date"),
    )
