"""交易指标服务：查询交易并调用聚合器，结果按用户交易版本号缓存"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.cache import cache, get_trade_version
from tradejournal.core.config import settings
from tradejournal.engine.metrics_aggregator import build_calendar, build_equity_curve, calculate_trading_metrics
from tradejournal.schemas.metrics import CalendarDay, EquityPoint, MetricsSummary, TradingMetrics
from tradejournal.services.account_service import AccountService
from tradejournal.services.gamification_service import GamificationService
from tradejournal.services.trade_service import TradeService

logger = logging.getLogger(__name__)


class MetricsService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.trades = TradeService(session)
        self.accounts = AccountService(session)

    async def _load_trades(
        self, user_id: str, account_id: Optional[int], start: Optional[datetime], end: Optional[datetime]
    ) -> list:
        if start or end:
            return await self.trades.list_trades_in_range(
                user_id, start or datetime.min, end or datetime.max, account_id
            )
        return await self.trades.list_trades(user_id, account_id)

    async def get_metrics(
        self,
        user_id: str,
        account_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TradingMetrics:
        version = await get_trade_version(user_id)
        cache_key = f"metrics:{user_id}:{account_id or 'all'}:{start or ''}:{end or ''}:v{version}"
        cached = await cache.get(cache_key)
        if cached:
            return TradingMetrics.model_validate(cached)

        trades = await self._load_trades(user_id, account_id, start, end)
        metrics = calculate_trading_metrics(trades)
        await cache.set(cache_key, metrics.model_dump(), expire=settings.METRICS_CACHE_TTL_SECONDS)
        return metrics

    async def get_summary(self, user_id: str, account_id: Optional[int] = None) -> Optional[MetricsSummary]:
        """仪表盘：指标 + 等级 + 余额；指定的账户不存在时返回 None"""
        account = (
            await self.accounts.get_account(account_id, user_id)
            if account_id is not None
            else await self.accounts.get_active_account(user_id)
        )
        if account_id is not None and account is None:
            return None
        scope = account.id if account else None
        metrics = await self.get_metrics(user_id, scope)
        trades = await self.trades.list_trades(user_id, scope)
        level = await GamificationService(self.session).get_level_info(user_id)

        initial_balance = float(account.initial_balance or 0) if account else 0.0
        return MetricsSummary(
            metrics=metrics,
            level=level,
            initial_balance=initial_balance,
            current_balance=initial_balance + metrics.total_profit,
            open_trades=sum(1 for t in trades if t.is_open),
            account_id=scope,
        )

    async def get_equity_curve(self, user_id: str, account_id: Optional[int] = None) -> Optional[list[EquityPoint]]:
        account = (
            await self.accounts.get_account(account_id, user_id)
            if account_id is not None
            else await self.accounts.get_active_account(user_id)
        )
        if account_id is not None and account is None:
            return None
        trades = await self.trades.list_trades(user_id, account.id if account else None)
        initial_balance = float(account.initial_balance or 0) if account else 0.0
        return build_equity_curve(trades, initial_balance)

    async def get_calendar(
        self, user_id: str, month: Optional[str] = None, account_id: Optional[int] = None
    ) -> list[CalendarDay]:
        trades = await self.trades.list_trades(user_id, account_id)
        return build_calendar(trades, month)
