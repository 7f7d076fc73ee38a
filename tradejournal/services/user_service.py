"""用户注册与资料"""
import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import hash_password
from tradejournal.models.user import User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalars().first()

    async def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Optional[User]:
        """注册新用户；邮箱已存在时返回 None"""
        if await self.get_by_email(email):
            return None
        user = User(
            id=str(uuid.uuid4()),
            email=email.strip().lower(),
            first_name=first_name,
            last_name=last_name,
            password_hash=hash_password(password),
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"User registered: {user.id}")
        return user
