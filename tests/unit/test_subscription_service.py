"""订阅服务测试：优惠码计价、限额、过期降级"""
from datetime import datetime, timedelta

import pytest

from tradejournal.core.config import settings
from tradejournal.models.account import Account
from tradejournal.models.user import User
from tradejournal.services.subscription_service import (
    PaymentError,
    SubscriptionService,
    limits_for,
    seed_promo_codes,
)


async def make_user(session, user_id="u1", **fields):
    user = User(id=user_id, email=f"{user_id}@example.com", **fields)
    session.add(user)
    await session.commit()
    return user


async def test_seed_only_when_table_is_empty(session):
    assert await seed_promo_codes(session) == 6
    assert await seed_promo_codes(session) == 0


@pytest.mark.parametrize(
    "code, discount_amount, final_price",
    [
        ("LAUNCH50", 50, 49),
        ("welcome25", 25, 74),
        ("SAVE20", 20, 79),
        ("STUDENT30", 30, 69),
        ("EARLY40", 40, 59),
        ("SUIZO", 99, 0),
    ],
)
async def test_validate_promo_pricing(session, code, discount_amount, final_price):
    await seed_promo_codes(session)
    result = await SubscriptionService(session).validate_promo(code)
    assert result.valid
    assert result.discount_amount == discount_amount
    assert result.final_price == final_price


async def test_invalid_and_exhausted_promo(session):
    await seed_promo_codes(session)
    svc = SubscriptionService(session)
    assert not (await svc.validate_promo("NOPE")).valid

    for _ in range(20):
        await svc.record_promo_use("SUIZO")
    result = await svc.validate_promo("SUIZO")
    assert not result.valid
    assert "exhausted" in result.message

    statuses = {p.code: p for p in await svc.promo_status()}
    assert statuses["SUIZO"].remaining_uses == 0
    assert statuses["SUIZO"].available is False
    assert statuses["LAUNCH50"].remaining_uses is None


async def test_free_access_with_full_discount(session):
    await seed_promo_codes(session)
    await make_user(session)
    svc = SubscriptionService(session)

    result = await svc.create_payment_intent("u1", 0, "SUIZO")
    assert result.free_access
    status = await svc.get_status("u1")
    assert status.subscription_type == "premium"
    assert (await svc.validate_promo("SUIZO")).remaining_uses == 19


async def test_zero_amount_with_partial_promo_is_rejected(session):
    await seed_promo_codes(session)
    await make_user(session)
    with pytest.raises(PaymentError):
        await SubscriptionService(session).create_payment_intent("u1", 0, "SAVE20")


async def test_zero_amount_requires_promo_code(session):
    await make_user(session)
    svc = SubscriptionService(session)
    with pytest.raises(PaymentError, match="promo code is required"):
        await svc.create_payment_intent("u1", 0)
    assert (await svc.get_status("u1")).subscription_type == "freemium"


async def test_amount_below_stripe_minimum(session):
    await make_user(session)
    with pytest.raises(PaymentError):
        await SubscriptionService(session).create_payment_intent("u1", 0.3)


async def test_payment_without_stripe_key(session):
    await make_user(session)
    with pytest.raises(PaymentError, match="not configured"):
        await SubscriptionService(session).create_payment_intent("u1", 49)


async def test_upgrade_and_cancel(session):
    await make_user(session)
    svc = SubscriptionService(session)

    user = await svc.upgrade("u1", months=2)
    assert user.subscription_type == "premium"
    assert user.subscription_expiry > datetime.utcnow() + timedelta(days=59)

    user = await svc.cancel("u1")
    assert user.subscription_type == "freemium"
    assert user.subscription_expiry is None
    assert await svc.upgrade("missing") is None


async def test_expired_premium_reads_as_freemium(session):
    await make_user(session, subscription_type="premium", subscription_expiry=datetime.utcnow() - timedelta(days=1))
    svc = SubscriptionService(session)

    status = await svc.get_status("u1")
    assert status.subscription_type == "freemium"
    assert status.is_expired

    allowed, _ = await svc.check_subscription_limits("u1", "ai_analysis")
    assert allowed
    user = await session.get(User, "u1")
    assert user.subscription_type == "freemium"
    assert user.subscription_expiry is None


async def test_account_limit(session, monkeypatch):
    monkeypatch.setattr(settings, "FREE_MAX_ACCOUNTS", 1)
    await make_user(session)
    svc = SubscriptionService(session)

    assert limits_for("freemium").max_accounts == 1
    assert (await svc.check_subscription_limits("u1", "account_creation"))[0]

    session.add(Account(user_id="u1", name="Main", initial_balance=1000))
    await session.commit()
    allowed, message = await svc.check_subscription_limits("u1", "account_creation")
    assert not allowed
    assert "Upgrade" in message


async def test_unlimited_by_default(session):
    await make_user(session)
    allowed, message = await SubscriptionService(session).check_subscription_limits("u1", "trade_creation", 10_000)
    assert allowed
    assert message is None
