"""管理后台服务：用户管理、系统统计、操作日志、优惠码"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.cache import bump_trade_version
from tradejournal.core.config import settings
from tradejournal.models.account import Account
from tradejournal.models.admin import AdminLog, PromoCode
from tradejournal.models.gamification import Achievement, DailyProgress, UserStats
from tradejournal.models.report_history import ReportHistory
from tradejournal.models.trade import Trade
from tradejournal.models.trade_suggestion import TradeSuggestion
from tradejournal.models.user import User

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, session: AsyncSession, admin_user_id: str):
        self.session = session
        self.admin_user_id = admin_user_id

    def _log(
        self,
        action: str,
        target_user_id: Optional[str] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """记录管理员操作，随调用方的事务一起提交"""
        self.session.add(AdminLog(
            admin_user_id=self.admin_user_id,
            action=action,
            target_user_id=target_user_id,
            target_type=target_type,
            target_id=target_id,
            details=details or {},
        ))
        logger.info(f"[admin:{self.admin_user_id}] {action} target={target_type}:{target_id or target_user_id}")

    # ---- 用户管理 ----

    async def list_users(self, page: int = 1, limit: int = 50, search: Optional[str] = None) -> tuple[list[User], int]:
        condition = None
        if search:
            pattern = f"%{search.lower()}%"
            condition = or_(
                func.lower(User.email).like(pattern),
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
            )

        stmt = select(User)
        count_stmt = select(func.count(User.id))
        if condition is not None:
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)

        stmt = stmt.order_by(desc(User.created_at), User.id).limit(limit).offset((page - 1) * limit)
        users = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return users, total

    async def update_role(self, user_id: str, role: str) -> Optional[User]:
        user = await self.session.get(User, user_id)
        if not user:
            return None
        old_role = user.role
        user.role = role
        self._log("user_role_updated", target_user_id=user_id, target_type="user", target_id=user_id,
                  details={"oldRole": old_role, "newRole": role})
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def suspend_user(self, user_id: str, reason: str) -> Optional[User]:
        user = await self.session.get(User, user_id)
        if not user:
            return None
        user.is_active = False
        user.suspension_reason = reason
        self._log("user_suspended", target_user_id=user_id, target_type="user", target_id=user_id,
                  details={"reason": reason})
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def unsuspend_user(self, user_id: str) -> Optional[User]:
        user = await self.session.get(User, user_id)
        if not user:
            return None
        user.is_active = True
        user.suspension_reason = None
        self._log("user_unsuspended", target_user_id=user_id, target_type="user", target_id=user_id)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def delete_user(self, user_id: str, reason: str) -> bool:
        """删除用户及其全部数据"""
        user = await self.session.get(User, user_id)
        if not user:
            return False

        account_ids = select(Account.id).where(Account.user_id == user_id)
        await self.session.execute(delete(Trade).where(Trade.account_id.in_(account_ids)))
        for model in (Account, Achievement, DailyProgress, UserStats, ReportHistory, TradeSuggestion):
            await self.session.execute(delete(model).where(model.user_id == user_id))
        email = user.email
        await self.session.delete(user)
        self._log("user_deleted", target_user_id=user_id, target_type="user", target_id=user_id,
                  details={"reason": reason, "email": email})
        await self.session.commit()
        await bump_trade_version(user_id)
        return True

    # ---- 统计 ----

    async def _count(self, stmt) -> int:
        return (await self.session.execute(stmt)).scalar() or 0

    async def get_system_stats(self) -> dict:
        total_users = await self._count(select(func.count(User.id)))
        active_users = await self._count(select(func.count(User.id)).where(User.is_active.is_(True)))
        total_trades = await self._count(select(func.count(Trade.id)))
        total_accounts = await self._count(select(func.count(Account.id)))
        premium_users = await self._count(select(func.count(User.id)).where(User.subscription_type == "premium"))
        return {
            "total_users": total_users,
            "active_users": active_users,
            "total_trades": total_trades,
            "total_accounts": total_accounts,
            "premium_users": premium_users,
            "revenue_this_month": round(premium_users * settings.ADMIN_REVENUE_PER_PREMIUM_USD, 2),
        }

    async def _daily_counts(self, column, days: int) -> list[tuple[str, int]]:
        since = datetime.utcnow() - timedelta(days=days)
        day = func.date(column)
        stmt = (
            select(day.label("day"), func.count().label("n"))
            .where(column >= since)
            .group_by(day)
            .order_by(day)
        )
        result = await self.session.execute(stmt)
        return [(str(row.day), row.n) for row in result]

    async def get_user_growth(self, days: int = 30) -> list[dict]:
        return [{"date": d, "users": n} for d, n in await self._daily_counts(User.created_at, days)]

    async def get_trade_volume(self, days: int = 30) -> list[dict]:
        return [{"date": d, "trades": n} for d, n in await self._daily_counts(Trade.open_time, days)]

    # ---- 日志 ----

    async def list_logs(
        self, page: int = 1, limit: int = 50, admin_user_id: Optional[str] = None
    ) -> tuple[list[AdminLog], int]:
        stmt = select(AdminLog)
        count_stmt = select(func.count(AdminLog.id))
        if admin_user_id:
            stmt = stmt.where(AdminLog.admin_user_id == admin_user_id)
            count_stmt = count_stmt.where(AdminLog.admin_user_id == admin_user_id)
        stmt = stmt.order_by(desc(AdminLog.created_at), desc(AdminLog.id)).limit(limit).offset((page - 1) * limit)
        logs = list((await self.session.execute(stmt)).scalars().all())
        return logs, await self._count(count_stmt)

    # ---- 优惠码 ----

    async def list_promo_codes(self) -> list[PromoCode]:
        result = await self.session.execute(select(PromoCode).order_by(desc(PromoCode.created_at), PromoCode.id))
        return list(result.scalars().all())

    async def create_promo_code(self, payload: dict) -> Optional[PromoCode]:
        """创建优惠码；代码重复时返回 None"""
        code = payload["code"].strip().upper()
        existing = await self.session.execute(select(PromoCode.id).where(PromoCode.code == code))
        if existing.scalar() is not None:
            return None
        promo = PromoCode(**{**payload, "code": code}, current_uses=0, created_by=self.admin_user_id)
        self.session.add(promo)
        await self.session.flush()
        self._log("promo_code_created", target_type="promo_code", target_id=str(promo.id),
                  details={"code": code, "discount": promo.discount})
        await self.session.commit()
        await self.session.refresh(promo)
        return promo

    async def update_promo_code(self, promo_id: int, payload: dict) -> Optional[PromoCode]:
        promo = await self.session.get(PromoCode, promo_id)
        if not promo:
            return None
        for key, value in payload.items():
            setattr(promo, key, value)
        self._log("promo_code_updated", target_type="promo_code", target_id=str(promo_id),
                  details={"updates": {k: str(v) if isinstance(v, datetime) else v for k, v in payload.items()}})
        await self.session.commit()
        await self.session.refresh(promo)
        return promo

    async def delete_promo_code(self, promo_id: int) -> bool:
        promo = await self.session.get(PromoCode, promo_id)
        if not promo:
            return False
        await self.session.delete(promo)
        self._log("promo_code_deleted", target_type="promo_code", target_id=str(promo_id),
                  details={"code": promo.code})
        await self.session.commit()
        return True
