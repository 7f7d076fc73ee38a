"""用户 / 认证 schemas"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tradejournal.schemas.metrics import CamelModel


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, max_length=64)
    last_name: Optional[str] = Field(None, max_length=64)


class UserView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "user"
    is_active: bool = True
    suspension_reason: Optional[str] = None
    subscription_type: str = "freemium"
    subscription_expiry: Optional[datetime] = None
    max_trades: int = -1
    max_accounts: int = -1
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    """与 /login 的 OAuth2 响应字段一致"""
    access_token: str
    token_type: str = "bearer"
