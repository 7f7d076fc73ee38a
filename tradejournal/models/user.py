"""用户模型"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, text

from tradejournal.models.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(64), nullable=True)
    last_name = Column(String(64), nullable=True)
    password_hash = Column(String(128), nullable=True)
    role = Column(String(16), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    suspension_reason = Column(String(255), nullable=True)
    subscription_type = Column(String(16), nullable=False, default="freemium")
    subscription_expiry = Column(DateTime, nullable=True)
    stripe_customer_id = Column(String(128), nullable=True)
    max_trades = Column(Integer, nullable=False, default=-1)
    max_accounts = Column(Integer, nullable=False, default=-1)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=text("CURRENT_TIMESTAMP"))
