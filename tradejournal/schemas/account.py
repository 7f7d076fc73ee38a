"""交易账户 schemas"""
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from tradejournal.schemas.metrics import CamelModel


class AccountCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=128)
    account_number: Optional[str] = None
    broker: Optional[str] = None
    currency: str = "USD"
    initial_balance: float = Field(0, ge=0)
    is_active: Optional[bool] = None


class AccountUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    account_number: Optional[str] = None
    broker: Optional[str] = None
    currency: Optional[str] = None
    initial_balance: Optional[float] = Field(None, ge=0)


class AccountView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    account_number: Optional[str] = None
    broker: Optional[str] = None
    currency: str = "USD"
    initial_balance: float = 0.0
    is_active: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
