"""管理后台路由（仅 admin 角色）"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user, require_admin
from tradejournal.models.db import get_session
from tradejournal.models.user import User
from tradejournal.schemas.admin import (
    AdminLogListResponse,
    AdminLogView,
    AdminStatus,
    DeleteUserRequest,
    GrowthPoint,
    PromoCodeCreate,
    PromoCodeUpdate,
    PromoCodeView,
    RoleUpdate,
    SuspendRequest,
    SystemStats,
    UserListResponse,
    VolumePoint,
)
from tradejournal.schemas.user import UserView
from tradejournal.services.admin_service import AdminService

router = APIRouter(prefix="/admin", tags=["管理后台"])


def _service(session: AsyncSession, admin_user_id: str) -> AdminService:
    return AdminService(session, admin_user_id)


@router.get("/status", response_model=AdminStatus)
async def admin_status(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """当前用户是否为管理员（任何登录用户可调用）"""
    user = await session.get(User, current_user)
    role = user.role if user else "user"
    return AdminStatus(is_admin=role == "admin", role=role)


# ---- 用户管理 ----

@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    users, total = await _service(session, admin_user).list_users(page, limit, search)
    return UserListResponse(users=[UserView.model_validate(u) for u in users], total=total, page=page, limit=limit)


@router.patch("/users/{user_id}/role", response_model=UserView)
async def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    user = await _service(session, admin_user).update_role(user_id, payload.role)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserView.model_validate(user)


@router.patch("/users/{user_id}/suspend", response_model=UserView)
async def suspend_user(
    user_id: str,
    payload: SuspendRequest,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    if user_id == admin_user:
        raise HTTPException(status_code=400, detail="Cannot suspend yourself")
    user = await _service(session, admin_user).suspend_user(user_id, payload.reason)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserView.model_validate(user)


@router.patch("/users/{user_id}/unsuspend", response_model=UserView)
async def unsuspend_user(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    user = await _service(session, admin_user).unsuspend_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserView.model_validate(user)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    payload: DeleteUserRequest,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    """删除用户及其全部数据（需填写原因）"""
    if user_id == admin_user:
        raise HTTPException(status_code=400, detail="Cannot delete yourself")
    ok = await _service(session, admin_user).delete_user(user_id, payload.reason)
    if not ok:
        raise HTTPException(status_code=404, detail="User not found")
    return {"status": "ok", "message": "User account deleted successfully"}


# ---- 统计 ----

@router.get("/stats", response_model=SystemStats)
async def system_stats(
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    return SystemStats(**await _service(session, admin_user).get_system_stats())


@router.get("/analytics/user-growth", response_model=list[GrowthPoint])
async def user_growth(
    days: int = Query(30, ge=1, le=365),
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    return [GrowthPoint(**p) for p in await _service(session, admin_user).get_user_growth(days)]


@router.get("/analytics/trade-volume", response_model=list[VolumePoint])
async def trade_volume(
    days: int = Query(30, ge=1, le=365),
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    return [VolumePoint(**p) for p in await _service(session, admin_user).get_trade_volume(days)]


@router.get("/logs", response_model=AdminLogListResponse)
async def admin_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin_user_id: Optional[str] = Query(None, alias="adminUserId"),
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    logs, total = await _service(session, admin_user).list_logs(page, limit, admin_user_id)
    return AdminLogListResponse(logs=[AdminLogView.model_validate(log) for log in logs], total=total)


# ---- 优惠码 ----

@router.get("/promo-codes", response_model=list[PromoCodeView])
async def list_promo_codes(
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    return [PromoCodeView.model_validate(p) for p in await _service(session, admin_user).list_promo_codes()]


@router.post("/promo-codes", response_model=PromoCodeView, status_code=201)
async def create_promo_code(
    payload: PromoCodeCreate,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    promo = await _service(session, admin_user).create_promo_code(payload.model_dump())
    if not promo:
        raise HTTPException(status_code=409, detail="Promo code already exists")
    return PromoCodeView.model_validate(promo)


@router.patch("/promo-codes/{promo_id}", response_model=PromoCodeView)
async def update_promo_code(
    promo_id: int,
    payload: PromoCodeUpdate,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    promo = await _service(session, admin_user).update_promo_code(promo_id, payload.model_dump(exclude_unset=True))
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return PromoCodeView.model_validate(promo)


@router.delete("/promo-codes/{promo_id}")
async def delete_promo_code(
    promo_id: int,
    session: AsyncSession = Depends(get_session),
    admin_user: str = Depends(require_admin),
):
    ok = await _service(session, admin_user).delete_promo_code(promo_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return {"status": "ok", "message": "Promo code deleted successfully"}
