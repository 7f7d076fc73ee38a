"""交易账户模型"""
from sqlalchemy import Boolean, Column, DateTime, DECIMAL, ForeignKey, Index, Integer, String, text

from tradejournal.models.db import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(128), nullable=False)
    account_number = Column(String(64), nullable=True)
    broker = Column(String(64), nullable=True)
    currency = Column(String(8), nullable=False, default="USD")
    initial_balance = Column(DECIMAL(20, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_account_user_active", "user_id", "is_active"),
    )
