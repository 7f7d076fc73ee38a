import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.config import settings
from tradejournal.core.logging_config import setup_logging
from tradejournal.models.db import SessionLocal, engine, get_session, init_models, redis_client

# 初始化系统日志
setup_logging()

from tradejournal.core.auth import get_current_user, login_for_access_token
from tradejournal.routers import (
    accounts,
    admin,
    ai,
    auth,
    gamification,
    market,
    metrics,
    reports,
    subscription,
    suggestions,
    trades,
)
from tradejournal.services.subscription_service import seed_promo_codes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期：启动时建表并写入默认优惠码，关闭时释放连接"""
    await init_models()
    async with SessionLocal() as session:
        await seed_promo_codes(session)
    logger.info(f"{settings.APP_NAME} started (db={settings.DB_TYPE}, auth={settings.AUTH_ENABLED})")

    yield

    if redis_client:
        await redis_client.close()
        logger.info("Redis connection closed")

    try:
        await engine.dispose()
        logger.info("Database engine disposed")
    except Exception as e:
        logger.warning(f"Failed to dispose engine gracefully: {e}")


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan, default_response_class=ORJSONResponse)

# 配置CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 启用GZip压缩（报告与交易列表较大）
app.add_middleware(GZipMiddleware, minimum_size=1024)

# 注册路由（默认受保护，需认证）
protected = [Depends(get_current_user)]
app.include_router(auth.router, prefix="/api/v1")
app.include_router(accounts.router, prefix="/api/v1", dependencies=protected)
app.include_router(trades.router, prefix="/api/v1", dependencies=protected)
app.include_router(gamification.router, prefix="/api/v1", dependencies=protected)
app.include_router(metrics.router, prefix="/api/v1", dependencies=protected)
app.include_router(ai.router, prefix="/api/v1", dependencies=protected)
app.include_router(reports.router, prefix="/api/v1", dependencies=protected)
app.include_router(subscription.router, prefix="/api/v1", dependencies=protected)
app.include_router(subscription.webhook_router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1", dependencies=protected)
app.include_router(market.router, prefix="/api/v1", dependencies=protected)
app.include_router(suggestions.router, prefix="/api/v1", dependencies=protected)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME, "auth": settings.AUTH_ENABLED}


@app.post("/api/v1/login")
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    """邮箱/密码换取 Bearer token（JWT）"""
    return await login_for_access_token(session, form_data)
