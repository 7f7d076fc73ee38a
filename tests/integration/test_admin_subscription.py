"""管理后台权限、订阅升级、优惠码与 Stripe 回调"""
from tradejournal.core.config import settings
from tradejournal.models.db import SessionLocal
from tradejournal.models.user import User

API = "/api/v1"


async def _set_role(user_id: str, role: str):
    async with SessionLocal() as session:
        user = await session.get(User, user_id)
        user.role = role
        await session.commit()


def make_admin(client):
    """demo 用户（AUTH_ENABLED=false）提升为管理员"""
    client.get(f"{API}/auth/user")
    client.portal.call(_set_role, settings.DEMO_USER_ID, "admin")


def test_non_admin_is_forbidden(client):
    status = client.get(f"{API}/admin/status").json()
    assert status == {"isAdmin": False, "role": "user"}

    assert client.get(f"{API}/admin/users").status_code == 403
    assert client.get(f"{API}/admin/stats").status_code == 403
    assert client.get(f"{API}/admin/promo-codes").status_code == 403


def test_admin_user_management(client, monkeypatch):
    make_admin(client)
    assert client.get(f"{API}/admin/status").json()["isAdmin"] is True

    monkeypatch.setattr(settings, "AUTH_ENABLED", True)
    resp = client.post(f"{API}/auth/register", json={"email": "victim@example.com", "password": "password123"})
    token = resp.json()["access_token"]
    monkeypatch.setattr(settings, "AUTH_ENABLED", False)

    users = client.get(f"{API}/admin/users", params={"search": "victim"}).json()
    assert users["total"] == 1
    victim_id = users["users"][0]["id"]

    suspended = client.patch(f"{API}/admin/users/{victim_id}/suspend", json={"reason": "spam"}).json()
    assert suspended["isActive"] is False
    assert suspended["suspensionReason"] == "spam"

    # 被停用的用户 token 失效
    monkeypatch.setattr(settings, "AUTH_ENABLED", True)
    blocked = client.get(f"{API}/trades", headers={"Authorization": f"Bearer {token}"})
    assert blocked.status_code == 403
    monkeypatch.setattr(settings, "AUTH_ENABLED", False)

    restored = client.patch(f"{API}/admin/users/{victim_id}/unsuspend").json()
    assert restored["isActive"] is True

    promoted = client.patch(f"{API}/admin/users/{victim_id}/role", json={"role": "admin"}).json()
    assert promoted["role"] == "admin"
    assert client.patch(f"{API}/admin/users/{victim_id}/role", json={"role": "root"}).status_code == 422

    assert client.patch(
        f"{API}/admin/users/{settings.DEMO_USER_ID}/suspend", json={"reason": "self"}
    ).status_code == 400

    deleted = client.request("DELETE", f"{API}/admin/users/{victim_id}", json={"reason": "requested"})
    assert deleted.status_code == 200
    assert client.request("DELETE", f"{API}/admin/users/{victim_id}", json={"reason": "again"}).status_code == 404

    logs = client.get(f"{API}/admin/logs").json()
    actions = [entry["action"] for entry in logs["logs"]]
    assert actions[0] == "user_deleted"
    assert {"user_suspended", "user_unsuspended", "user_role_updated"} <= set(actions)


def test_admin_stats_and_analytics(client):
    make_admin(client)
    client.post(f"{API}/subscription/upgrade", json={"months": 1})

    stats = client.get(f"{API}/admin/stats").json()
    assert stats["totalUsers"] == 1
    assert stats["premiumUsers"] == 1
    assert stats["revenueThisMonth"] == 29.99

    assert isinstance(client.get(f"{API}/admin/analytics/user-growth").json(), list)
    assert client.get(f"{API}/admin/analytics/trade-volume", params={"days": 7}).json() == []


def test_admin_promo_crud(client):
    make_admin(client)
    codes = {p["code"] for p in client.get(f"{API}/admin/promo-codes").json()}
    assert {"LAUNCH50", "SUIZO"} <= codes

    created = client.post(f"{API}/admin/promo-codes", json={"code": "summer10", "discount": 10, "maxUses": 5})
    assert created.status_code == 201
    promo = created.json()
    assert promo["code"] == "SUMMER10"
    assert client.post(f"{API}/admin/promo-codes", json={"code": "SUMMER10", "discount": 10}).status_code == 409
    assert client.post(f"{API}/admin/promo-codes", json={"code": "BAD", "discount": 150}).status_code == 422

    validation = client.post(f"{API}/validate-promo", json={"code": "summer10"}).json()
    assert validation["discountAmount"] == 10
    assert validation["finalPrice"] == 89

    client.patch(f"{API}/admin/promo-codes/{promo['id']}", json={"isActive": False})
    assert client.post(f"{API}/validate-promo", json={"code": "SUMMER10"}).status_code == 400

    assert client.delete(f"{API}/admin/promo-codes/{promo['id']}").status_code == 200
    assert client.delete(f"{API}/admin/promo-codes/{promo['id']}").status_code == 404


def test_subscription_upgrade_and_cancel(client):
    status = client.get(f"{API}/subscription/status").json()
    assert status["subscriptionType"] == "freemium"
    assert status["limits"]["maxTrades"] == -1

    upgraded = client.post(f"{API}/subscription/upgrade", json={"months": 3}).json()
    assert upgraded["subscriptionType"] == "premium"
    assert upgraded["subscriptionExpiry"] is not None

    cancelled = client.post(f"{API}/subscription/cancel").json()
    assert cancelled["subscriptionType"] == "freemium"


def test_promo_validation_and_free_access(client):
    full = client.post(f"{API}/validate-promo", json={"code": "suizo"}).json()
    assert full["valid"] is True
    assert full["finalPrice"] == 0
    assert full["remainingUses"] == 20

    assert client.post(f"{API}/validate-promo", json={"code": "UNKNOWN"}).status_code == 400

    resp = client.post(f"{API}/create-payment-intent", json={"amount": 0, "promoCode": "SUIZO"})
    assert resp.status_code == 200
    assert resp.json()["freeAccess"] is True
    assert client.get(f"{API}/subscription/status").json()["subscriptionType"] == "premium"

    promos = {p["code"]: p for p in client.get(f"{API}/promo-status").json()["promoCodes"]}
    assert promos["SUIZO"]["currentUses"] == 1


def test_payment_intent_validation(client):
    assert client.post(f"{API}/create-payment-intent", json={"amount": 0.2}).status_code == 400
    assert client.post(f"{API}/create-payment-intent", json={"amount": 0}).status_code == 400
    assert client.post(f"{API}/create-payment-intent", json={"amount": -5}).status_code == 422
    # 未配置 Stripe 密钥
    assert client.post(f"{API}/create-payment-intent", json={"amount": 49}).status_code == 400


def test_webhook_requires_secret(client, monkeypatch):
    resp = client.post(f"{API}/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})
    assert resp.status_code == 500

    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    resp = client.post(f"{API}/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})
    assert resp.status_code == 400
