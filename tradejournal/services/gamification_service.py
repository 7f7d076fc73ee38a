"""游戏化服务：成就初始化与解锁、每日进度、用户积分统计"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.config import settings
from tradejournal.engine.gamification import (
    ACHIEVEMENT_CATALOG,
    AchievementCondition,
    EvaluationContext,
    calculate_daily_points,
    calculate_level,
    evaluate_conditions,
)
from tradejournal.engine.metrics_aggregator import calculate_daily_progress
from tradejournal.models.gamification import Achievement, DailyProgress, UserStats
from tradejournal.schemas.metrics import LevelInfo
from tradejournal.services.trade_service import TradeService

logger = logging.getLogger(__name__)


class GamificationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ---- UserStats ----

    async def get_or_create_stats(self, user_id: str) -> UserStats:
        result = await self.session.execute(select(UserStats).where(UserStats.user_id == user_id))
        stats = result.scalars().first()
        if stats is None:
            stats = UserStats(user_id=user_id, current_level=1, current_points=0)
            self.session.add(stats)
            await self.session.commit()
            await self.session.refresh(stats)
        return stats

    async def update_stats(self, user_id: str, payload: dict) -> UserStats:
        stats = await self.get_or_create_stats(user_id)
        for key, value in payload.items():
            if value is not None and hasattr(stats, key):
                setattr(stats, key, value)
        stats.current_level = calculate_level(stats.current_points).current_level
        await self.session.commit()
        await self.session.refresh(stats)
        return stats

    async def get_level_info(self, user_id: str) -> LevelInfo:
        stats = await self.get_or_create_stats(user_id)
        return calculate_level(stats.current_points)

    # ---- Achievements ----

    async def initialize_achievements(self, user_id: str) -> int:
        """把成就目录复制给用户（只补缺失的条目）"""
        result = await self.session.execute(select(Achievement.condition).where(Achievement.user_id == user_id))
        existing = set(result.scalars().all())
        created = 0
        for definition in ACHIEVEMENT_CATALOG:
            if definition.condition.value in existing:
                continue
            self.session.add(Achievement(
                user_id=user_id,
                name=definition.name,
                description=definition.description,
                type=definition.type.value,
                condition=definition.condition.value,
                points=definition.points,
                icon=definition.icon,
                is_unlocked=False,
            ))
            created += 1
        if created:
            await self.session.commit()
            logger.info(f"Initialized {created} achievements for {user_id}")
        return created

    async def list_achievements(self, user_id: str) -> list[Achievement]:
        stmt = select(Achievement).where(Achievement.user_id == user_id).order_by(Achievement.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sync_points_with_achievements(self, user_id: str) -> UserStats:
        """XP = 已解锁成就积分之和"""
        achievements = await self.list_achievements(user_id)
        total = sum(a.points for a in achievements if a.is_unlocked)
        stats = await self.get_or_create_stats(user_id)
        if stats.current_points != total:
            stats.current_points = total
            stats.current_level = calculate_level(total).current_level
            await self.session.commit()
        return stats

    async def unlock_achievement(self, user_id: str, achievement_id: int) -> Optional[Achievement]:
        """解锁成就；已解锁时为空操作"""
        result = await self.session.execute(
            select(Achievement).where(Achievement.id == achievement_id, Achievement.user_id == user_id)
        )
        achievement = result.scalars().first()
        if achievement is None:
            return None
        if await self._mark_unlocked(user_id, achievement):
            await self.session.commit()
            await self.session.refresh(achievement)
        return achievement

    async def _mark_unlocked(self, user_id: str, achievement: Achievement) -> bool:
        # 条件更新保证同一成就只加一次分
        result = await self.session.execute(
            update(Achievement)
            .where(Achievement.id == achievement.id, Achievement.is_unlocked.is_(False))
            .values(is_unlocked=True, unlocked_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return False

        stats = await self.get_or_create_stats(user_id)
        stats.current_points = (stats.current_points or 0) + achievement.points
        stats.current_level = calculate_level(stats.current_points).current_level
        logger.info(f"🏆 {user_id} unlocked '{achievement.condition}' (+{achievement.points} XP)")
        return True

    async def check_and_unlock(self, user_id: str, today: Optional[date] = None) -> list[Achievement]:
        """评估全部未解锁成就，返回本次新解锁的成就"""
        await self.initialize_achievements(user_id)
        trades = await TradeService(self.session).list_trades(user_id)
        history = await self.get_progress_history(user_id, settings.GAMIFICATION_HISTORY_DAYS)
        satisfied = evaluate_conditions(EvaluationContext(
            trades=trades,
            daily_progress=history,
            today=today or date.today(),
        ))

        newly_unlocked = []
        for achievement in await self.list_achievements(user_id):
            if achievement.is_unlocked:
                continue
            try:
                condition = AchievementCondition(achievement.condition)
            except ValueError:
                logger.warning(f"Unknown achievement condition '{achievement.condition}' for {user_id}")
                continue
            if condition in satisfied and await self._mark_unlocked(user_id, achievement):
                newly_unlocked.append(achievement)

        if newly_unlocked:
            await self.session.commit()
            for achievement in newly_unlocked:
                await self.session.refresh(achievement)
        return newly_unlocked

    # ---- DailyProgress ----

    async def get_daily_progress(self, user_id: str, day: date) -> Optional[DailyProgress]:
        result = await self.session.execute(
            select(DailyProgress).where(DailyProgress.user_id == user_id, DailyProgress.date == day)
        )
        return result.scalars().first()

    async def get_progress_history(self, user_id: str, days: int = 30) -> list[DailyProgress]:
        """最近 N 条每日进度，按日期倒序"""
        stmt = (
            select(DailyProgress)
            .where(DailyProgress.user_id == user_id)
            .order_by(desc(DailyProgress.date))
            .limit(days)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_daily_progress(self, user_id: str, day: date, flags: dict) -> DailyProgress:
        progress = await self.get_daily_progress(user_id, day)
        if progress is None:
            progress = DailyProgress(user_id=user_id, date=day)
            self.session.add(progress)
        for key in ("daily_profit_target", "risk_control", "no_overtrading"):
            if flags.get(key) is not None:
                setattr(progress, key, bool(flags[key]))
        progress.points_earned = calculate_daily_points(progress)
        await self.session.commit()
        await self.session.refresh(progress)
        return progress

    async def recompute_daily_progress(self, user_id: str, days: Iterable[date]) -> None:
        """按当天平仓的交易重算每日进度；当天已无平仓交易时删除该行"""
        days = set(days)
        if not days:
            return
        trades = await TradeService(self.session).list_trades(user_id)
        for day in days:
            day_trades = [t for t in trades if t.close_time is not None and t.close_time.date() == day]
            if not day_trades:
                existing = await self.get_daily_progress(user_id, day)
                if existing is not None:
                    await self.session.delete(existing)
                    await self.session.commit()
                continue
            flags = calculate_daily_progress(day_trades, day)
            await self.upsert_daily_progress(user_id, day, flags.model_dump())

    async def refresh_stats_counters(self, user_id: str) -> UserStats:
        result = await self.session.execute(
            select(DailyProgress).where(DailyProgress.user_id == user_id).order_by(desc(DailyProgress.date))
        )
        rows = list(result.scalars().all())
        stats = await self.get_or_create_stats(user_id)
        stats.total_profitable_days = sum(1 for r in rows if r.daily_profit_target)
        stats.total_risk_control_days = sum(1 for r in rows if r.risk_control)
        streak = 0
        for row in rows:
            if not row.daily_profit_target:
                break
            streak += 1
        stats.consecutive_profitable_days = streak
        await self.session.commit()
        return stats

    async def after_trades_changed(self, user_id: str, touched_days: Iterable[date] = ()) -> list[Achievement]:
        """交易写入后的游戏化记账；失败只记日志，不影响调用方"""
        try:
            await self.recompute_daily_progress(user_id, touched_days)
            await self.refresh_stats_counters(user_id)
            return await self.check_and_unlock(user_id)
        except Exception as e:
            logger.error(f"Gamification update failed for {user_id}: {e}", exc_info=True)
            await self.session.rollback()
            return []
