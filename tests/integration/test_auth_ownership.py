"""认证与数据隔离：开启 AUTH_ENABLED，两个用户互相不可见"""
import pytest

from tradejournal.core.config import settings

API = "/api/v1"


@pytest.fixture
def auth_enabled(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_ENABLED", True)


def register(client, email, password="password123"):
    resp = client.post(f"{API}/auth/register", json={"email": email, "password": password, "firstName": "T"})
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_account_with_trade(client, headers, ticket="X1"):
    account = client.post(f"{API}/accounts", json={"name": "Main", "initialBalance": 1000}, headers=headers).json()
    trade = client.post(
        f"{API}/trades",
        json={
            "accountId": account["id"],
            "ticketId": ticket,
            "openTime": "2024-03-04T09:00:00",
            "closeTime": "2024-03-04T10:00:00",
            "profit": 10,
            "lots": 0.1,
            "symbol": "EURUSD",
        },
        headers=headers,
    )
    assert trade.status_code == 201, trade.text
    return account, trade.json()["trade"]


def test_requests_without_token_are_rejected(client, auth_enabled):
    assert client.get(f"{API}/trades").status_code == 401
    assert client.get(f"{API}/metrics").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get(f"{API}/trades", headers=bad).status_code == 401


def test_register_login_and_profile(client, auth_enabled):
    register(client, "Alice@Example.com")
    assert client.post(
        f"{API}/auth/register", json={"email": "alice@example.com", "password": "password123"}
    ).status_code == 409

    login = client.post(f"{API}/login", data={"username": "alice@example.com", "password": "password123"})
    assert login.status_code == 200
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    me = client.get(f"{API}/auth/user", headers=headers).json()
    assert me["email"] == "alice@example.com"
    assert me["role"] == "user"
    assert me["subscriptionType"] == "freemium"

    wrong = client.post(f"{API}/login", data={"username": "alice@example.com", "password": "nope-nope"})
    assert wrong.status_code == 401


def test_short_password_is_rejected(client, auth_enabled):
    resp = client.post(f"{API}/auth/register", json={"email": "short@example.com", "password": "123"})
    assert resp.status_code == 422


def test_users_cannot_see_each_others_data(client, auth_enabled):
    alice = register(client, "alice@example.com")
    bob = register(client, "bob@example.com")
    alice_account, alice_trade = create_account_with_trade(client, alice)

    assert client.get(f"{API}/trades", headers=bob).json() == []
    assert client.get(f"{API}/trades/{alice_trade['id']}", headers=bob).status_code == 404
    assert client.get(f"{API}/accounts/{alice_account['id']}", headers=bob).status_code == 404
    assert client.delete(f"{API}/trades/{alice_trade['id']}", headers=bob).status_code == 404
    assert client.put(f"{API}/trades/{alice_trade['id']}", json={"profit": 1}, headers=bob).status_code == 404
    assert client.get(f"{API}/metrics", headers=bob).json()["totalTrades"] == 0
    foreign = {"accountId": alice_account["id"]}
    assert client.get(f"{API}/metrics/summary", params=foreign, headers=bob).status_code == 404
    assert client.get(f"{API}/charts/profit-loss", params=foreign, headers=bob).status_code == 404
    assert client.get(f"{API}/metrics/summary", params=foreign, headers=alice).status_code == 200

    # 不能把交易写进别人的账户
    stolen = client.post(
        f"{API}/trades",
        json={
            "accountId": alice_account["id"],
            "ticketId": "B1",
            "openTime": "2024-03-04T09:00:00",
            "symbol": "EURUSD",
        },
        headers=bob,
    )
    assert stolen.status_code == 404

    client.delete(f"{API}/data/clear", headers=bob)
    assert len(client.get(f"{API}/trades", headers=alice).json()) == 1
    assert client.get(f"{API}/metrics", headers=alice).json()["totalTrades"] == 1


def test_achievements_are_per_user(client, auth_enabled):
    alice = register(client, "alice@example.com")
    bob = register(client, "bob@example.com")
    create_account_with_trade(client, alice)

    alice_first = next(a for a in client.get(f"{API}/achievements", headers=alice).json()
                       if a["condition"] == "first_trade")
    bob_first = next(a for a in client.get(f"{API}/achievements", headers=bob).json()
                     if a["condition"] == "first_trade")
    assert alice_first["isUnlocked"]
    assert not bob_first["isUnlocked"]
    assert client.post(f"{API}/achievements/{alice_first['id']}/unlock", headers=bob).status_code == 404


def test_register_disabled_without_auth(client):
    resp = client.post(f"{API}/auth/register", json={"email": "x@example.com", "password": "password123"})
    assert resp.status_code == 400
    assert client.get(f"{API}/auth/user").json()["id"] == settings.DEMO_USER_ID
