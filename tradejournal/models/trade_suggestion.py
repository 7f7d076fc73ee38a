"""AI 交易建议"""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, text

from tradejournal.models.db import Base


class TradeSuggestion(Base):
    __tablename__ = "trade_suggestions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symbol = Column(String(32), nullable=False)
    type = Column(String(8), nullable=False)  # buy / sell
    entry_price = Column(Float, nullable=False)
    stop_loss = Column(Float, nullable=True)
    take_profit = Column(Float, nullable=True)
    lot_size = Column(Float, nullable=False)
    risk_score = Column(Integer, nullable=False)  # 1-100，越低越安全
    confidence_score = Column(Integer, nullable=False)  # 1-100
    reasoning = Column(Text, nullable=False)
    market_analysis = Column(Text, nullable=False)
    timeframe = Column(String(8), nullable=False)  # 1h / 4h / 1d
    provider = Column(String(16), nullable=False, server_default="rules")
    valid_until = Column(DateTime, nullable=False)
    status = Column(String(16), nullable=False, server_default="active")  # active / executed / expired
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_suggestion_user_status", "user_id", "status"),
    )
