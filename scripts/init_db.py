"""
数据库初始化脚本

创建所有表，写入默认优惠码，并可选创建管理员账号：

    python scripts/init_db.py --admin-email admin@example.com --admin-password 'secret123'
"""
import argparse
import asyncio
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import hash_password
from tradejournal.core.config import settings
from tradejournal.models.db import SessionLocal, engine, init_models
from tradejournal.models.user import User
from tradejournal.services.subscription_service import seed_promo_codes


async def ensure_admin(session: AsyncSession, email: str, password: str) -> User:
    result = await session.execute(select(User).where(func.lower(User.email) == email.lower()))
    user = result.scalars().first()
    if user is None:
        user = User(id=str(uuid.uuid4()), email=email.lower(), first_name="Admin")
        session.add(user)
    user.role = "admin"
    user.is_active = True
    user.password_hash = hash_password(password)
    await session.commit()
    return user


async def init_database(admin_email: Optional[str] = None, admin_password: Optional[str] = None):
    """初始化数据库，创建所有表"""
    print(f"正在初始化数据库 ({settings.DB_TYPE})...")
    print(f"连接地址: {settings.DATABASE_URL.split('@')[-1]}")  # 隐藏密码

    await init_models()

    async with SessionLocal() as session:
        created = await seed_promo_codes(session)
        print(f"优惠码: 新增 {created} 个")
        if admin_email and admin_password:
            admin = await ensure_admin(session, admin_email, admin_password)
            print(f"管理员: {admin.email} ({admin.id})")

    await engine.dispose()
    print("✅ 数据库初始化完成！")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed default data")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    args = parser.parse_args()
    asyncio.run(init_database(args.admin_email, args.admin_password))
