"""管理后台 schemas"""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from tradejournal.schemas.metrics import CamelModel
from tradejournal.schemas.user import UserView


class UserListResponse(CamelModel):
    users: list[UserView] = []
    total: int = 0
    page: int = 1
    limit: int = 50


class RoleUpdate(CamelModel):
    role: Literal["user", "admin"]


class SuspendRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=255)


class DeleteUserRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=255)


class SystemStats(CamelModel):
    total_users: int = 0
    active_users: int = 0
    total_trades: int = 0
    total_accounts: int = 0
    premium_users: int = 0
    revenue_this_month: float = 0.0


class GrowthPoint(CamelModel):
    date: str
    users: int = 0


class VolumePoint(CamelModel):
    date: str
    trades: int = 0


class AdminLogView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_user_id: str
    action: str
    target_user_id: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class AdminLogListResponse(CamelModel):
    logs: list[AdminLogView] = []
    total: int = 0


class PromoCodeCreate(CamelModel):
    code: str = Field(..., min_length=1, max_length=64)
    discount: float = Field(..., gt=0, le=100)
    description: Optional[str] = None
    max_uses: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class PromoCodeUpdate(CamelModel):
    discount: Optional[float] = Field(None, gt=0, le=100)
    description: Optional[str] = None
    max_uses: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None


class PromoCodeView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    discount: float
    description: Optional[str] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class AdminStatus(CamelModel):
    is_admin: bool
    role: str
