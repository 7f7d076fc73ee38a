"""测试公共配置：临时 SQLite 数据库，关闭 Redis 与外部 API"""
import os
import tempfile

# 必须在导入 tradejournal 之前设置，settings 在导入时读取环境变量
_DB_DIR = tempfile.mkdtemp(prefix="tradejournal-test-")
os.environ["DB_TYPE"] = "sqlite"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["AUTH_ENABLED"] = "false"
os.environ["REDIS_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
for key in (
    "OPENAI_API_KEY", "DEEPSEEK_API_KEY", "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET",
    "TRADERMADE_API_KEY", "ALPHA_VANTAGE_API_KEY",
):
    os.environ.pop(key, None)

import pytest
from fastapi.testclient import TestClient

from tradejournal.core.config import settings
from tradejournal.models.db import Base, SessionLocal, engine, init_models


@pytest.fixture(autouse=True)
def _no_external_services(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(settings, "DEEPSEEK_ENABLED", False)
    monkeypatch.setattr(settings, "DEEPSEEK_API_KEY", None)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
    monkeypatch.setattr(settings, "TRADERMADE_API_KEY", None)
    monkeypatch.setattr(settings, "ALPHA_VANTAGE_API_KEY", None)
    monkeypatch.setattr(settings, "AUTH_ENABLED", False)


async def _reset_database():
    await init_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def client():
    """每个测试一个干净的数据库；TestClient 会执行 lifespan（建表 + 默认优惠码）"""
    from tradejournal.main import app

    with TestClient(app) as c:
        c.portal.call(_reset_database)
        c.portal.call(_seed_promos)
        yield c


async def _seed_promos():
    from tradejournal.services.subscription_service import seed_promo_codes

    async with SessionLocal() as session:
        await seed_promo_codes(session)


@pytest.fixture
async def session():
    await _reset_database()
    async with SessionLocal() as s:
        yield s
