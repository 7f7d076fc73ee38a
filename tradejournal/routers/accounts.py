"""交易账户路由"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.account import AccountCreateRequest, AccountUpdateRequest, AccountView
from tradejournal.services.account_service import AccountService
from tradejournal.services.gamification_service import GamificationService
from tradejournal.services.subscription_service import SubscriptionService
from tradejournal.services.trade_service import TradeService

router = APIRouter(prefix="/accounts", tags=["交易账户"])


@router.get("", response_model=list[AccountView])
async def list_accounts(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    accounts = await AccountService(session).list_accounts(current_user)
    return [AccountView.model_validate(a) for a in accounts]


@router.get("/active", response_model=AccountView)
async def get_active_account(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    account = await AccountService(session).get_active_account(current_user)
    if not account:
        raise HTTPException(status_code=404, detail="No active account")
    return AccountView.model_validate(account)


@router.get("/{account_id}", response_model=AccountView)
async def get_account(
    account_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    account = await AccountService(session).get_account(account_id, current_user)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return AccountView.model_validate(account)


@router.post("", response_model=AccountView, status_code=201)
async def create_account(
    payload: AccountCreateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """创建账户（受订阅限额约束）"""
    allowed, message = await SubscriptionService(session).check_subscription_limits(current_user, "account_creation")
    if not allowed:
        raise HTTPException(status_code=403, detail=message)
    account = await AccountService(session).create_account(current_user, payload.model_dump())
    return AccountView.model_validate(account)


@router.put("/{account_id}", response_model=AccountView)
async def update_account(
    account_id: int,
    payload: AccountUpdateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    account = await AccountService(session).update_account(
        account_id, current_user, payload.model_dump(exclude_none=True)
    )
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return AccountView.model_validate(account)


@router.post("/{account_id}/activate", response_model=AccountView)
async def activate_account(
    account_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """切换当前账户"""
    account = await AccountService(session).set_active_account(account_id, current_user)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return AccountView.model_validate(account)


@router.delete("/{account_id}")
async def delete_account(
    account_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """删除账户及其交易"""
    trades = await TradeService(session).list_trades(current_user, account_id)
    touched = {t.close_time.date() for t in trades if t.close_time}
    ok = await AccountService(session).delete_account(account_id, current_user)
    if not ok:
        raise HTTPException(status_code=404, detail="Account not found")
    await GamificationService(session).after_trades_changed(current_user, touched)
    return {"status": "ok"}
