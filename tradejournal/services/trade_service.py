"""交易记录服务：所有查询都通过 Account 关联按用户过滤"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.cache import bump_trade_version
from tradejournal.models.account import Account
from tradejournal.models.gamification import DailyProgress, UserStats
from tradejournal.models.trade import Trade

logger = logging.getLogger(__name__)


class TradeService:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _owned(self, user_id: str):
        return select(Trade).join(Account, Trade.account_id == Account.id).where(Account.user_id == user_id)

    async def list_trades(self, user_id: str, account_id: Optional[int] = None) -> list[Trade]:
        """按开仓时间倒序返回交易"""
        stmt = self._owned(user_id)
        if account_id is not None:
            stmt = stmt.where(Trade.account_id == account_id)
        stmt = stmt.order_by(desc(Trade.open_time), desc(Trade.id))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_trades(self, user_id: str) -> int:
        stmt = (
            select(func.count(Trade.id))
            .join(Account, Trade.account_id == Account.id)
            .where(Account.user_id == user_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_trade(self, trade_id: int, user_id: str) -> Optional[Trade]:
        result = await self.session.execute(self._owned(user_id).where(Trade.id == trade_id))
        return result.scalars().first()

    async def list_trades_in_range(
        self, user_id: str, start: datetime, end: datetime, account_id: Optional[int] = None
    ) -> list[Trade]:
        stmt = self._owned(user_id).where(Trade.open_time >= start, Trade.open_time <= end)
        if account_id is not None:
            stmt = stmt.where(Trade.account_id == account_id)
        result = await self.session.execute(stmt.order_by(desc(Trade.open_time)))
        return list(result.scalars().all())

    async def list_trades_by_symbol(self, user_id: str, symbol: str) -> list[Trade]:
        stmt = self._owned(user_id).where(Trade.symbol == symbol).order_by(desc(Trade.open_time))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_trade(self, user_id: str, payload: dict) -> Optional[Trade]:
        """创建交易；账户不属于该用户时返回 None"""
        if not await self._owns_account(user_id, payload.get("account_id")):
            return None
        trade = Trade(**_with_open_flag(payload))
        self.session.add(trade)
        await self.session.commit()
        await self.session.refresh(trade)
        await bump_trade_version(user_id)
        return trade

    async def update_trade(self, trade_id: int, user_id: str, payload: dict) -> Optional[Trade]:
        trade = await self.get_trade(trade_id, user_id)
        if not trade:
            return None
        if "account_id" in payload and not await self._owns_account(user_id, payload["account_id"]):
            return None
        for key, value in payload.items():
            if hasattr(trade, key):
                setattr(trade, key, value)
        trade.is_open = trade.close_time is None
        await self.session.commit()
        await self.session.refresh(trade)
        await bump_trade_version(user_id)
        return trade

    async def delete_trade(self, trade_id: int, user_id: str) -> Optional[Trade]:
        """删除交易，返回被删除的记录（用于刷新当日进度）"""
        trade = await self.get_trade(trade_id, user_id)
        if not trade:
            return None
        await self.session.delete(trade)
        await self.session.commit()
        await bump_trade_version(user_id)
        return trade

    async def clear_user_data(self, user_id: str) -> int:
        """清空用户的账户、交易和每日进度；已解锁的成就与积分保留"""
        account_ids = select(Account.id).where(Account.user_id == user_id)
        result = await self.session.execute(delete(Trade).where(Trade.account_id.in_(account_ids)))
        deleted = result.rowcount or 0
        await self.session.execute(delete(Account).where(Account.user_id == user_id))
        await self.session.execute(delete(DailyProgress).where(DailyProgress.user_id == user_id))

        stats = (await self.session.execute(select(UserStats).where(UserStats.user_id == user_id))).scalars().first()
        if stats:
            stats.total_profitable_days = 0
            stats.total_risk_control_days = 0
            stats.consecutive_profitable_days = 0
        await self.session.commit()
        await bump_trade_version(user_id)
        logger.info(f"Cleared {deleted} trades for {user_id}")
        return deleted

    async def _owns_account(self, user_id: str, account_id: Optional[int]) -> bool:
        if account_id is None:
            return False
        stmt = select(Account.id).where(Account.id == account_id, Account.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar() is not None


def _with_open_flag(payload: dict) -> dict:
    data = dict(payload)
    data["is_open"] = data.get("close_time") is None
    return data
