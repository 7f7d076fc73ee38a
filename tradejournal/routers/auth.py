"""注册与当前用户"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import create_access_token, get_current_user
from tradejournal.core.config import settings
from tradejournal.models.db import get_session
from tradejournal.schemas.user import RegisterRequest, TokenResponse, UserView
from tradejournal.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """邮箱注册，成功后直接返回 token"""
    if not settings.AUTH_ENABLED:
        raise HTTPException(status_code=400, detail="Authentication is disabled")
    user = await UserService(session).register(
        payload.email, payload.password, payload.first_name, payload.last_name
    )
    if not user:
        raise HTTPException(status_code=409, detail="Email already registered")
    return TokenResponse(access_token=create_access_token(data={"sub": user.id}))


@router.get("/user", response_model=UserView)
async def get_me(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    user = await UserService(session).get_user(current_user)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserView.model_validate(user)
