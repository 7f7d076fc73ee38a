"""成就解锁与积分同步测试"""
from datetime import date, datetime

from tradejournal.engine.gamification import ACHIEVEMENT_CATALOG
from tradejournal.models.account import Account
from tradejournal.models.trade import Trade
from tradejournal.models.user import User
from tradejournal.services.gamification_service import GamificationService


async def setup_user_with_trade(session, profit=25.0):
    session.add(User(id="g1", email="g1@example.com"))
    account = Account(user_id="g1", name="Main", initial_balance=1000, is_active=True)
    session.add(account)
    await session.commit()
    session.add(Trade(
        account_id=account.id,
        ticket_id="T1",
        open_time=datetime(2024, 3, 4, 9),
        close_time=datetime(2024, 3, 4, 10),
        open_price=1.08,
        close_price=1.09,
        profit=profit,
        lots=0.1,
        symbol="EURUSD",
        type="Buy",
    ))
    await session.commit()


async def test_initialize_is_idempotent(session):
    session.add(User(id="g1", email="g1@example.com"))
    await session.commit()
    svc = GamificationService(session)

    assert await svc.initialize_achievements("g1") == len(ACHIEVEMENT_CATALOG)
    assert await svc.initialize_achievements("g1") == 0
    assert len(await svc.list_achievements("g1")) == len(ACHIEVEMENT_CATALOG)


async def test_check_and_unlock_awards_points_once(session):
    await setup_user_with_trade(session)
    svc = GamificationService(session)

    unlocked = await svc.check_and_unlock("g1")
    conditions = {a.condition for a in unlocked}
    assert {"first_trade", "first_profitable_trade", "first_profitable_day"} <= conditions

    expected = sum(a.points for a in unlocked)
    stats = await svc.get_or_create_stats("g1")
    assert stats.current_points == expected

    assert await svc.check_and_unlock("g1") == []
    stats = await svc.sync_points_with_achievements("g1")
    assert stats.current_points == expected


async def test_manual_unlock_is_idempotent(session):
    session.add(User(id="g1", email="g1@example.com"))
    await session.commit()
    svc = GamificationService(session)
    await svc.initialize_achievements("g1")
    first = (await svc.list_achievements("g1"))[0]

    await svc.unlock_achievement("g1", first.id)
    await svc.unlock_achievement("g1", first.id)

    stats = await svc.get_or_create_stats("g1")
    assert stats.current_points == first.points
    assert await svc.unlock_achievement("g1", 999999) is None


async def test_daily_progress_recomputed_from_trades(session):
    await setup_user_with_trade(session)
    svc = GamificationService(session)

    await svc.after_trades_changed("g1", [date(2024, 3, 4)])
    progress = await svc.get_daily_progress("g1", date(2024, 3, 4))
    assert progress.daily_profit_target
    assert progress.risk_control
    assert progress.no_overtrading
    assert progress.points_earned == 100
