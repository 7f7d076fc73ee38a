"""交易账户服务"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.cache import bump_trade_version
from tradejournal.models.account import Account
from tradejournal.models.trade import Trade

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_accounts(self, user_id: str) -> list[Account]:
        stmt = select(Account).where(Account.user_id == user_id).order_by(Account.created_at, Account.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_accounts(self, user_id: str) -> int:
        result = await self.session.execute(select(func.count(Account.id)).where(Account.user_id == user_id))
        return result.scalar() or 0

    async def get_account(self, account_id: int, user_id: str) -> Optional[Account]:
        stmt = select(Account).where(Account.id == account_id, Account.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_active_account(self, user_id: str) -> Optional[Account]:
        stmt = select(Account).where(Account.user_id == user_id, Account.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_account(self, user_id: str, payload: dict) -> Account:
        """创建账户；用户的第一个账户自动设为当前账户"""
        make_active = payload.pop("is_active", None)
        if make_active is None:
            make_active = await self.get_active_account(user_id) is None
        if make_active:
            await self._deactivate_all(user_id)

        account = Account(user_id=user_id, is_active=bool(make_active), **payload)
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        logger.info(f"Account {account.id} created for {user_id}")
        return account

    async def update_account(self, account_id: int, user_id: str, payload: dict) -> Optional[Account]:
        account = await self.get_account(account_id, user_id)
        if not account:
            return None
        payload.pop("is_active", None)
        for key, value in payload.items():
            if value is not None and hasattr(account, key):
                setattr(account, key, value)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def delete_account(self, account_id: int, user_id: str) -> bool:
        """删除账户及其全部交易"""
        account = await self.get_account(account_id, user_id)
        if not account:
            return False
        await self.session.execute(delete(Trade).where(Trade.account_id == account.id))
        await self.session.delete(account)
        await self.session.commit()
        await bump_trade_version(user_id)
        return True

    async def set_active_account(self, account_id: int, user_id: str) -> Optional[Account]:
        """切换当前账户：同一用户同时只有一个活动账户"""
        account = await self.get_account(account_id, user_id)
        if not account:
            return None
        await self._deactivate_all(user_id)
        account.is_active = True
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def _deactivate_all(self, user_id: str) -> None:
        await self.session.execute(
            update(Account).where(Account.user_id == user_id).values(is_active=False)
        )
