import logging
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.config import settings
from tradejournal.models.db import get_session
from tradejournal.models.user import User

logger = logging.getLogger(__name__)

# OAuth2 token endpoint; auto_error is off so that AUTH_ENABLED=false works without a header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/login", auto_error=False)

ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


async def ensure_demo_user(session: AsyncSession) -> User:
    user = await session.get(User, settings.DEMO_USER_ID)
    if user is None:
        user = User(
            id=settings.DEMO_USER_ID,
            email=settings.DEMO_USER_EMAIL,
            first_name="Demo",
            last_name="Trader",
        )
        session.add(user)
        await session.commit()
        logger.info(f"Demo user {settings.DEMO_USER_ID} created")
    return user


async def authenticate_user(session: AsyncSession, email: str, password: str) -> Optional[User]:
    result = await session.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = result.scalars().first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> str:
    """Resolve the request's user id from the bearer token."""
    if not settings.AUTH_ENABLED:
        await ensure_demo_user(session)
        return settings.DEMO_USER_ID

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = await session.get(User, user_id)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account suspended")
    return user_id


async def require_admin(
    current_user: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> str:
    user = await session.get(User, current_user)
    if user is None or user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


async def login_for_access_token(session: AsyncSession, form_data: OAuth2PasswordRequestForm) -> dict:
    if not settings.AUTH_ENABLED:
        raise HTTPException(status_code=400, detail="Authentication is disabled")

    user = await authenticate_user(session, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account suspended")

    user.last_login_at = datetime.utcnow()
    await session.commit()

    access_token = create_access_token(data={"sub": user.id})
    return {"access_token": access_token, "token_type": "bearer"}
