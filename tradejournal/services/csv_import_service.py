"""
MetaTrader 风格 CSV 交易导入

列名与 Trade 字段一一对应：
Ticket ID, Open Time, Open Price, Close Time, Close Price, Profit, Lots,
Commission, Swap, Symbol, Type, SL, TP, Pips, Reason, Volume

解析失败的行（例如 Open Time 无法识别）会被跳过并计数，其余行正常导入。
"""
from __future__ import annotations

import csv
import io
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.cache import bump_trade_version
from tradejournal.core.config import settings
from tradejournal.models.trade import Trade
from tradejournal.services.account_service import AccountService

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Ticket ID", "Open Time", "Open Price", "Close Time", "Close Price", "Profit", "Lots",
    "Commission", "Swap", "Symbol", "Type", "SL", "TP", "Pips", "Reason", "Volume",
]

_DATETIME_FORMATS = (
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%Y.%m.%d",
    "%Y-%m-%d",
)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_datetime(value: Any) -> datetime:
    """解析 MT4/MT5 导出的时间；带时区的时间统一转为 UTC naive"""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        parsed = None
        for fmt in _DATETIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _float_or(value: Any, default: Optional[float]) -> Optional[float]:
    if _blank(value):
        return default
    try:
        number = float(str(value).strip())
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def _int_or_none(value: Any) -> Optional[int]:
    number = _float_or(value, None)
    return int(number) if number is not None else None


def map_csv_row(row: dict, account_id: Optional[int] = None) -> dict:
    """把一行 CSV 映射为 Trade 字段；Open Time 缺失或无法解析时抛出 ValueError"""
    if _blank(row.get("Open Time")):
        raise ValueError("Open Time is required")

    close_time = None if _blank(row.get("Close Time")) else parse_datetime(row["Close Time"])
    ticket_id = row.get("Ticket ID")
    return {
        "account_id": account_id,
        "ticket_id": str(ticket_id).strip() if not _blank(ticket_id) else uuid.uuid4().hex[:16],
        "open_time": parse_datetime(row["Open Time"]),
        "open_price": _float_or(row.get("Open Price"), 0.0),
        "close_time": close_time,
        "close_price": None if close_time is None else _float_or(row.get("Close Price"), None),
        "profit": _float_or(row.get("Profit"), 0.0),
        "lots": _float_or(row.get("Lots"), 0.0),
        "commission": _float_or(row.get("Commission"), 0.0),
        "swap": _float_or(row.get("Swap"), 0.0),
        "symbol": str(row.get("Symbol")).strip() if not _blank(row.get("Symbol")) else "UNKNOWN",
        "type": str(row.get("Type")).strip() if not _blank(row.get("Type")) else "Buy",
        "stop_loss": _float_or(row.get("SL"), None),
        "take_profit": _float_or(row.get("TP"), None),
        "pips": _float_or(row.get("Pips"), None),
        "reason": _int_or_none(row.get("Reason")),
        "volume": _float_or(row.get("Volume"), None),
        "is_open": close_time is None,
    }


def parse_csv_text(content: str) -> list[dict]:
    """CSV 文本 -> 行字典列表（去掉表头两侧空白和 BOM）"""
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    rows = []
    for raw in reader:
        rows.append({(k or "").strip(): v for k, v in raw.items()})
    return rows


@dataclass
class ImportResult:
    account_id: int
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)


class CsvImportService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.accounts = AccountService(session)

    async def import_rows(
        self,
        user_id: str,
        rows: Iterable[dict],
        account_name: Optional[str] = None,
        account_number: Optional[str] = None,
        broker: Optional[str] = None,
        initial_balance: Optional[float] = None,
    ) -> ImportResult:
        """导入到当前活动账户；没有活动账户时先创建"""
        balance = initial_balance or settings.DEFAULT_INITIAL_BALANCE
        account = await self.accounts.get_active_account(user_id)
        if account is None:
            account = await self.accounts.create_account(user_id, {
                "name": account_name or f"Trading Account {datetime.utcnow():%Y-%m-%d}",
                "account_number": account_number or None,
                "broker": broker or None,
                "currency": "USD",
                "initial_balance": balance,
                "is_active": True,
            })
        else:
            account.initial_balance = balance

        result = ImportResult(account_id=account.id)
        for index, row in enumerate(rows, start=1):
            try:
                data = map_csv_row(row, account.id)
            except (ValueError, TypeError, OverflowError) as e:
                result.skipped += 1
                if len(result.errors) < 20:
                    result.errors.append(f"row {index}: {e}")
                logger.warning(f"CSV import: skipped row {index} for {user_id}: {e}")
                continue
            trade = Trade(**data)
            self.session.add(trade)
            result.trades.append(trade)

        await self.session.commit()
        result.imported = len(result.trades)
        await bump_trade_version(user_id)
        logger.info(
            f"CSV import for {user_id}: {result.imported} imported, {result.skipped} skipped "
            f"(account {account.id})"
        )
        return result
