"""交易记录模型"""
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, text

from tradejournal.models.db import Base


class Trade(Base):
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    ticket_id = Column(String(64), nullable=False)
    open_time = Column(DateTime, nullable=False)
    open_price = Column(Float, nullable=False, default=0.0)
    close_time = Column(DateTime, nullable=True)
    close_price = Column(Float, nullable=True)
    profit = Column(Float, nullable=True, default=0.0)
    lots = Column(Float, nullable=False, default=0.0)
    commission = Column(Float, nullable=False, default=0.0)
    swap = Column(Float, nullable=False, default=0.0)
    symbol = Column(String(32), nullable=False)
    type = Column(String(8), nullable=False, default="Buy")
    stop_loss = Column(Float, nullable=True)
    take_profit = Column(Float, nullable=True)
    pips = Column(Float, nullable=True)
    reason = Column(Integer, nullable=True)
    volume = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    is_open = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_trade_account_open", "account_id", "open_time"),
        Index("idx_trade_symbol", "symbol"),
    )

    @property
    def net_profit(self) -> float:
        return (self.profit or 0.0) + (self.commission or 0.0) + (self.swap or 0.0)
