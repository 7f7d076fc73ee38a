"""交易记录 / CSV 导入 schemas"""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import ConfigDict, Field

from tradejournal.schemas.metrics import CamelModel


class TradeCreateRequest(CamelModel):
    account_id: int
    ticket_id: str = Field(..., min_length=1, max_length=64)
    open_time: datetime
    open_price: float = 0.0
    close_time: Optional[datetime] = None
    close_price: Optional[float] = None
    profit: float = 0.0
    lots: float = Field(0.0, ge=0)
    commission: float = 0.0
    swap: float = 0.0
    symbol: str = Field(..., min_length=1, max_length=32)
    type: Literal["Buy", "Sell"] = "Buy"
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    pips: Optional[float] = None
    reason: Optional[int] = None
    volume: Optional[float] = None
    notes: Optional[str] = None


class TradeUpdateRequest(CamelModel):
    account_id: Optional[int] = None
    ticket_id: Optional[str] = Field(None, min_length=1, max_length=64)
    open_time: Optional[datetime] = None
    open_price: Optional[float] = None
    close_time: Optional[datetime] = None
    close_price: Optional[float] = None
    profit: Optional[float] = None
    lots: Optional[float] = Field(None, ge=0)
    commission: Optional[float] = None
    swap: Optional[float] = None
    symbol: Optional[str] = Field(None, min_length=1, max_length=32)
    type: Optional[Literal["Buy", "Sell"]] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    pips: Optional[float] = None
    reason: Optional[int] = None
    volume: Optional[float] = None
    notes: Optional[str] = None


class TradeView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    ticket_id: str
    open_time: datetime
    open_price: float = 0.0
    close_time: Optional[datetime] = None
    close_price: Optional[float] = None
    profit: Optional[float] = 0.0
    lots: float = 0.0
    commission: float = 0.0
    swap: float = 0.0
    symbol: str
    type: str = "Buy"
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    pips: Optional[float] = None
    reason: Optional[int] = None
    volume: Optional[float] = None
    notes: Optional[str] = None
    is_open: bool = False
    created_at: Optional[datetime] = None


class TradeWriteResponse(CamelModel):
    trade: TradeView
    new_achievements: list[str] = []


class ImportRequest(CamelModel):
    """前端解析后的 CSV 行（列名与 MetaTrader 导出一致）"""
    trades: list[dict[str, Any]]
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    broker: Optional[str] = None
    initial_balance: Optional[float] = Field(None, ge=0)


class ImportResponse(CamelModel):
    status: str = "ok"
    account_id: int
    imported: int = 0
    skipped: int = 0
    errors: list[str] = []
    new_achievements: list[str] = []


class ClearDataResponse(CamelModel):
    status: str = "ok"
    deleted_trades: int = 0
